"""Timesheet, invoice and rate models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from installer_ops.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from installer_ops.models.project import Project
    from installer_ops.models.workforce import Worker


# ===== Timesheets =====


class TimesheetEntry(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A worker's reported hours and kilometers for one project on one day."""

    __tablename__ = "timesheet_entry"

    worker_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("worker.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project.id", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    driver_kilometers: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    crew_kilometers: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "hours_worked >= 0 AND hours_worked <= 24",
            name="timesheet_entry_hours_check",
        ),
        CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'rejected')",
            name="timesheet_entry_status_check",
        ),
    )

    # Relationships
    worker: Mapped[Worker] = relationship()
    project: Mapped[Project] = relationship(back_populates="timesheet_entries")


# ===== Invoices =====


class Invoice(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Billing document (objednávka) issued by a worker for one project."""

    __tablename__ = "invoice"

    invoice_number: Mapped[str] = mapped_column(String, nullable=False)
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project.id", ondelete="CASCADE"),
        nullable=False,
    )
    worker_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("worker.id", ondelete="CASCADE"),
        nullable=False,
    )
    assignment_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("assignment.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    issue_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    work_specification: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_period: Mapped[str | None] = mapped_column(String, nullable=True)
    work_location: Mapped[str | None] = mapped_column(String, nullable=True)
    created_by_name: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    vat_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_with_vat: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    approved_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("invoice_number", name="invoice_number_unique"),
        CheckConstraint(
            "status IN ('draft', 'pending_approval', 'approved', 'rejected', 'paid')",
            name="invoice_status_check",
        ),
    )

    # Relationships
    project: Mapped[Project] = relationship(back_populates="invoices")
    worker: Mapped[Worker] = relationship()
    items: Mapped[list[InvoiceItem]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )


class InvoiceItem(Base, UUIDPrimaryKeyMixin):
    """Materialized invoice line; quantities never follow later timesheet edits."""

    __tablename__ = "invoice_item"

    invoice_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("invoice.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    worker_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    worker_name: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str] = mapped_column(String, nullable=False)
    line_kind: Mapped[str | None] = mapped_column(String, nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    unit: Mapped[str] = mapped_column(String, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "line_kind IS NULL OR line_kind IN "
            "('labor', 'driver_transport', 'crew_transport', 'other')",
            name="invoice_item_line_kind_check",
        ),
    )

    invoice: Mapped[Invoice] = relationship(back_populates="items")


# ===== Rates =====


class GlobalRates(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Per-km vehicle rates for domestic and international projects."""

    __tablename__ = "global_rates"

    name: Mapped[str] = mapped_column(String, nullable=False, default="default")
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vehicle_rates_domestic: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    vehicle_rates_international: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True
    )
