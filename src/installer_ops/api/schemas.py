"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from installer_ops.calculators.types import SortDirection, TimelineView, ViewMode


# ============================================================================
# Timeline schemas
# ============================================================================


class TimelineBarResponse(BaseModel):
    """A bar drawn inside a timeline row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    label: str
    start: date
    end: date
    color: str
    link: str


class DayCellBar(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bar_id: str
    show_label: bool


class DayCellResponse(BaseModel):
    day: date
    bars: list[DayCellBar]


class TimelineRowResponse(BaseModel):
    """One resource row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    label: str
    sub_label: str | None = None
    link: str
    bars: list[TimelineBarResponse]
    cells: list[DayCellResponse] | None = None


class TimelineResponse(BaseModel):
    """Rows for the requested window and view."""

    title: str
    view_mode: ViewMode
    view: TimelineView
    window_start: date
    window_end: date
    previous_anchor: date
    next_anchor: date
    filters_active: bool = False
    rows: list[TimelineRowResponse]


class TimelineFiltersPayload(BaseModel):
    project_statuses: list[str] = Field(default_factory=list)
    worker_availabilities: list[str] = Field(default_factory=list)
    worker_seniorities: list[str] = Field(default_factory=list)
    vehicle_statuses: list[str] = Field(default_factory=list)


class TimelineSortPayload(BaseModel):
    key: str = "name"
    direction: SortDirection = SortDirection.ASC


class TimelinePreferencesPayload(BaseModel):
    """Persisted timeline view state of the current user."""

    view_mode: ViewMode = ViewMode.MONTH
    view: TimelineView = TimelineView.PROJECTS
    sort: TimelineSortPayload = Field(default_factory=TimelineSortPayload)
    filters: TimelineFiltersPayload = Field(default_factory=TimelineFiltersPayload)


# ============================================================================
# Invoice schemas
# ============================================================================


class InvoiceLineResponse(BaseModel):
    """An invoice line, derived or stored."""

    model_config = ConfigDict(from_attributes=True)

    worker_id: UUID | None = None
    worker_name: str | None = None
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    total_price: Decimal
    line_kind: str | None = None
    comment: str | None = None


class InvoicePreviewResponse(BaseModel):
    project_id: UUID
    worker_id: UUID
    items: list[InvoiceLineResponse]
    total_amount: Decimal


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice from the current derivation."""

    project_id: UUID
    work_specification: str = Field(..., min_length=1)
    created_by_name: str | None = None
    other_costs_amount: Decimal = Decimal("0")
    other_costs_comment: str | None = None
    notes: str | None = None


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    project_id: UUID
    worker_id: UUID
    assignment_id: UUID | None = None
    status: str
    issue_date: date | None = None
    work_specification: str | None = None
    work_period: str | None = None
    work_location: str | None = None
    created_by_name: str | None = None
    notes: str | None = None
    rejection_reason: str | None = None
    total_amount: Decimal
    vat_amount: Decimal
    total_with_vat: Decimal
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    items: list[InvoiceLineResponse]


class InvoiceListResponse(BaseModel):
    items: list[InvoiceResponse]
    total: int


class RejectionRequest(BaseModel):
    """Schema for rejecting an invoice or timesheet entry."""

    reason: str = Field(..., min_length=1)


# ============================================================================
# Timesheet schemas
# ============================================================================


class TimesheetEntryCreate(BaseModel):
    """Schema for creating or updating a timesheet entry."""

    project_id: UUID
    date: date
    hours_worked: Decimal = Field(..., ge=0, le=24)
    driver_kilometers: Decimal | None = Field(default=None, ge=0)
    crew_kilometers: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    status: str = "draft"


class TimesheetEntryResponse(BaseModel):
    """Schema for timesheet entry response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    worker_id: UUID
    project_id: UUID
    date: date
    hours_worked: Decimal
    driver_kilometers: Decimal | None = None
    crew_kilometers: Decimal | None = None
    status: str
    notes: str | None = None
    rejection_reason: str | None = None


class TimesheetSaveResponse(BaseModel):
    entry: TimesheetEntryResponse
    outside_assignment: bool


class ExistingHoursResponse(BaseModel):
    worker_id: UUID
    date: date
    existing_hours: Decimal
    remaining_hours: Decimal


class RevertRequest(BaseModel):
    reason: str | None = None


# ============================================================================
# Certificate schemas
# ============================================================================


class CertificatePayload(BaseModel):
    name: str = Field(..., min_length=1)
    issuer: str | None = None
    type: str = "jine"
    issue_date: date
    expiry_date: date | None = None
    file_url: str | None = None
    notes: str | None = None


class CertificateOperation(BaseModel):
    """A staged change submitted with the worker form."""

    kind: str = Field(..., pattern="^(add|edit|delete)$")
    certificate_id: UUID | None = None
    payload: CertificatePayload | None = None
    uploaded_file_url: str | None = None


class CertificateBatch(BaseModel):
    operations: list[CertificateOperation]


class CertificateResponse(BaseModel):
    """Schema for certificate response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    worker_id: UUID
    name: str
    issuer: str | None = None
    type: str
    issue_date: date
    expiry_date: date | None = None
    file_url: str | None = None
    notes: str | None = None
    status: str | None = None


class UploadResponse(BaseModel):
    file_url: str


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None
