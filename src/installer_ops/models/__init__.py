"""ORM models."""

from installer_ops.models.base import Base, TimestampMixin
from installer_ops.models.billing import GlobalRates, Invoice, InvoiceItem, TimesheetEntry
from installer_ops.models.project import Project
from installer_ops.models.user import AppUser
from installer_ops.models.workforce import Assignment, Certificate, Vehicle, Worker

__all__ = [
    "AppUser",
    "Assignment",
    "Base",
    "Certificate",
    "GlobalRates",
    "Invoice",
    "InvoiceItem",
    "Project",
    "TimesheetEntry",
    "TimestampMixin",
    "Vehicle",
    "Worker",
]
