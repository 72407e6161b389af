"""Installer ops services."""

from installer_ops.services.state_machine import (
    InvalidTransitionError,
    InvoiceStateMachine,
    InvoiceStatus,
    RejectionReasonRequiredError,
    TimesheetStateMachine,
    TimesheetStatus,
)
from installer_ops.services.invoice_service import AlreadyInvoicedError, InvoiceService
from installer_ops.services.session_context import Role, SessionContext
from installer_ops.services.timesheet_service import (
    DailyHoursExceededError,
    HoursCheckDebouncer,
    TimesheetService,
)

__all__ = [
    "AlreadyInvoicedError",
    "DailyHoursExceededError",
    "HoursCheckDebouncer",
    "InvalidTransitionError",
    "InvoiceService",
    "InvoiceStateMachine",
    "InvoiceStatus",
    "RejectionReasonRequiredError",
    "Role",
    "SessionContext",
    "TimesheetService",
    "TimesheetStateMachine",
    "TimesheetStatus",
]
