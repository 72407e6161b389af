"""Invoice API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from installer_ops.api.dependencies import CurrentSession, DbSession
from installer_ops.api.schemas import (
    ErrorResponse,
    InvoiceCreate,
    InvoiceLineResponse,
    InvoiceListResponse,
    InvoicePreviewResponse,
    InvoiceResponse,
    RejectionRequest,
)
from installer_ops.calculators import LineItemBuilder
from installer_ops.errors import PermissionDeniedError
from installer_ops.services.invoice_service import InvoiceService
from installer_ops.services.session_context import SessionContext

router = APIRouter(prefix="/invoices", tags=["invoices"])


def _check_owner(session: SessionContext, worker_id: UUID, action: str) -> None:
    if session.is_admin:
        return
    if session.require_worker(action) != worker_id:
        raise PermissionDeniedError(action, session.effective_role.value)


# ============================================================================
# Derivation and creation
# ============================================================================


@router.get(
    "/preview",
    response_model=InvoicePreviewResponse,
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def preview_invoice(
    db: DbSession,
    session: CurrentSession,
    project_id: UUID,
) -> InvoicePreviewResponse:
    """Lines not yet invoiced by the acting worker on a project."""
    worker_id = session.require_worker("preview invoices")
    lines = await InvoiceService(db).preview(project_id, worker_id)
    totals = LineItemBuilder.calculate_totals(lines)
    return InvoicePreviewResponse(
        project_id=project_id,
        worker_id=worker_id,
        items=[InvoiceLineResponse.model_validate(line.to_item_dict()) for line in lines],
        total_amount=totals.total_amount,
    )


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def create_invoice(
    db: DbSession,
    session: CurrentSession,
    payload: InvoiceCreate,
) -> InvoiceResponse:
    """Create an invoice for approval from the current derivation."""
    worker_id = session.require_worker("create invoices")
    invoice = await InvoiceService(db).create_invoice(
        project_id=payload.project_id,
        worker_id=worker_id,
        work_specification=payload.work_specification,
        created_by_name=payload.created_by_name,
        other_costs_amount=payload.other_costs_amount,
        other_costs_comment=payload.other_costs_comment,
        notes=payload.notes,
    )
    response = InvoiceResponse.model_validate(invoice)
    await db.commit()
    return response


# ============================================================================
# Listing
# ============================================================================


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    db: DbSession,
    session: CurrentSession,
    project_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> InvoiceListResponse:
    """Admins see every invoice; installers only their own."""
    worker_id = None if session.is_admin else session.require_worker("list invoices")
    invoices = await InvoiceService(db).list_invoices(
        worker_id=worker_id, project_id=project_id, status=status_filter
    )
    return InvoiceListResponse(
        items=[InvoiceResponse.model_validate(inv) for inv in invoices],
        total=len(invoices),
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_invoice(
    db: DbSession,
    session: CurrentSession,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    invoice = await InvoiceService(db).get_invoice(invoice_id)
    _check_owner(session, invoice.worker_id, "view this invoice")
    return InvoiceResponse.model_validate(invoice)


# ============================================================================
# Workflow
# ============================================================================


@router.post(
    "/{invoice_id}/approve",
    response_model=InvoiceResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def approve_invoice(
    db: DbSession,
    session: CurrentSession,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    session.require_admin("approve invoices")
    invoice = await InvoiceService(db).approve(invoice_id)
    response = InvoiceResponse.model_validate(invoice)
    await db.commit()
    return response


@router.post(
    "/{invoice_id}/reject",
    response_model=InvoiceResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def reject_invoice(
    db: DbSession,
    session: CurrentSession,
    invoice_id: Annotated[UUID, Path()],
    payload: RejectionRequest,
) -> InvoiceResponse:
    """Reject with a reason; the quantities become invoiceable again."""
    session.require_admin("reject invoices")
    invoice = await InvoiceService(db).reject(invoice_id, payload.reason)
    response = InvoiceResponse.model_validate(invoice)
    await db.commit()
    return response


@router.post(
    "/{invoice_id}/pay",
    response_model=InvoiceResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def mark_invoice_paid(
    db: DbSession,
    session: CurrentSession,
    invoice_id: Annotated[UUID, Path()],
) -> InvoiceResponse:
    session.require_admin("mark invoices as paid")
    invoice = await InvoiceService(db).mark_paid(invoice_id)
    response = InvoiceResponse.model_validate(invoice)
    await db.commit()
    return response


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def delete_invoice(
    db: DbSession,
    session: CurrentSession,
    invoice_id: Annotated[UUID, Path()],
) -> None:
    service = InvoiceService(db)
    invoice = await service.get_invoice(invoice_id)
    _check_owner(session, invoice.worker_id, "delete this invoice")
    await service.delete_invoice(invoice_id)
    await db.commit()
