"""Invoice and timesheet state machines with transition validation."""

from __future__ import annotations

from enum import Enum


class InvoiceStatus(str, Enum):
    """Invoice status values."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class TimesheetStatus(str, Enum):
    """Timesheet entry status values."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class RejectionReasonRequiredError(Exception):
    """Raised when rejecting without a reason."""

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"Rejecting a {entity} requires a reason")


class _StateMachine:
    """Shared transition checks; subclasses declare ``VALID_TRANSITIONS``."""

    ENTITY = "entity"
    VALID_TRANSITIONS: dict[str, list[str]] = {}
    REJECTED: str = "rejected"

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(
        cls,
        from_status: str,
        to_status: str,
        reason: str | None = None,
    ) -> None:
        """Validate a transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed
            RejectionReasonRequiredError: If rejecting without a reason
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)
        if to_status == cls.REJECTED and not (reason and reason.strip()):
            raise RejectionReasonRequiredError(cls.ENTITY)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])


class InvoiceStateMachine(_StateMachine):
    """State machine for invoice status transitions.

    Allowed transitions:
    - draft → pending_approval
    - pending_approval → approved
    - pending_approval → rejected (reason required)
    - approved → paid
    """

    ENTITY = "invoice"
    REJECTED = InvoiceStatus.REJECTED

    VALID_TRANSITIONS: dict[str, list[str]] = {
        InvoiceStatus.DRAFT: [InvoiceStatus.PENDING_APPROVAL],
        InvoiceStatus.PENDING_APPROVAL: [InvoiceStatus.APPROVED, InvoiceStatus.REJECTED],
        InvoiceStatus.REJECTED: [],  # Delete only
        InvoiceStatus.APPROVED: [InvoiceStatus.PAID],
        InvoiceStatus.PAID: [],  # Terminal state
    }

    # Statuses where the owning worker may still edit or delete
    EDITABLE = {
        InvoiceStatus.DRAFT,
        InvoiceStatus.PENDING_APPROVAL,
        InvoiceStatus.REJECTED,
    }

    @classmethod
    def is_editable(cls, status: str) -> bool:
        return status in cls.EDITABLE


class TimesheetStateMachine(_StateMachine):
    """State machine for timesheet entry transitions.

    Allowed transitions:
    - draft → submitted
    - submitted → approved
    - submitted → rejected (reason required)
    - approved → submitted (revert approval)
    - approved → rejected (returned for correction)
    - rejected → submitted (resubmit after correction)
    - rejected → draft (edited after rejection)
    """

    ENTITY = "timesheet entry"
    REJECTED = TimesheetStatus.REJECTED

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TimesheetStatus.DRAFT: [TimesheetStatus.SUBMITTED],
        TimesheetStatus.SUBMITTED: [TimesheetStatus.APPROVED, TimesheetStatus.REJECTED],
        TimesheetStatus.APPROVED: [TimesheetStatus.SUBMITTED, TimesheetStatus.REJECTED],
        TimesheetStatus.REJECTED: [TimesheetStatus.SUBMITTED, TimesheetStatus.DRAFT],
    }

    # Statuses where the worker may change hours and kilometers
    EDITABLE = {TimesheetStatus.DRAFT, TimesheetStatus.SUBMITTED, TimesheetStatus.REJECTED}

    @classmethod
    def is_editable(cls, status: str) -> bool:
        return status in cls.EDITABLE
