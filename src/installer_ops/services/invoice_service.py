"""Invoice service - preview, creation and approval of worker invoices."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from installer_ops.calculators import InvoiceLineItemDeriver, LineItemBuilder, RateResolver
from installer_ops.calculators.types import (
    InvoicedQuantities,
    InvoiceLineCandidate,
    LineKind,
    VehicleRateTables,
)
from installer_ops.config import Settings, get_settings
from installer_ops.errors import EntityNotFoundError
from installer_ops.models import (
    Assignment,
    GlobalRates,
    Invoice,
    InvoiceItem,
    Project,
    TimesheetEntry,
    Worker,
)
from installer_ops.services.state_machine import (
    InvalidTransitionError,
    InvoiceStateMachine,
    InvoiceStatus,
)

logger = logging.getLogger(__name__)

# Quantity field billed by each derived line kind
BILLED_FIELDS = {
    LineKind.LABOR: "hours",
    LineKind.DRIVER_TRANSPORT: "driver_km",
    LineKind.CREW_TRANSPORT: "crew_km",
}


class AlreadyInvoicedError(Exception):
    """Raised when a new invoice would bill work another invoice already covers."""

    def __init__(self, project_id: UUID, worker_id: UUID | None):
        self.project_id = project_id
        self.worker_id = worker_id
        super().__init__(
            f"Work of worker {worker_id} on project {project_id} is already invoiced"
        )


@dataclass
class InvoiceInputs:
    """Everything the deriver needs for one worker and project."""

    project: Project
    acting_worker: Worker
    workers: list[Worker]
    assignments: list[Assignment]
    timesheets: list[TimesheetEntry]
    invoices: list[Invoice]
    rate_tables: VehicleRateTables


def format_work_period(project: Project) -> str | None:
    """Project period as ``d.M.yyyy - d.M.yyyy``."""
    if project.start_date is None or project.end_date is None:
        return None
    start, end = project.start_date, project.end_date
    return f"{start.day}.{start.month}.{start.year} - {end.day}.{end.month}.{end.year}"


class InvoiceService:
    """Service for invoice lifecycle.

    Operations:
    - preview: not-yet-invoiced lines for the acting worker on a project
    - create_invoice: persist those lines (plus other costs) for approval
    - approve / reject / mark_paid: status workflow
    - delete_invoice: remove an invoice that is still editable

    A rejected invoice stays rejected. Its quantities are released to the
    next derivation, so the worker deletes it and issues a new one.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        deriver: InvoiceLineItemDeriver | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.deriver = deriver or InvoiceLineItemDeriver()

    # ----- loading -----

    async def get_invoice(self, invoice_id: UUID) -> Invoice:
        result = await self.session.execute(
            select(Invoice).where(Invoice.id == invoice_id).options(selectinload(Invoice.items))
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise EntityNotFoundError("Invoice", invoice_id)
        return invoice

    async def list_invoices(
        self,
        worker_id: UUID | None = None,
        project_id: UUID | None = None,
        status: str | None = None,
    ) -> list[Invoice]:
        query = (
            select(Invoice)
            .options(selectinload(Invoice.items))
            .order_by(Invoice.issue_date.desc(), Invoice.invoice_number)
        )
        if worker_id is not None:
            query = query.where(Invoice.worker_id == worker_id)
        if project_id is not None:
            query = query.where(Invoice.project_id == project_id)
        if status is not None:
            query = query.where(Invoice.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def load_rate_tables(self) -> VehicleRateTables:
        result = await self.session.execute(select(GlobalRates))
        return RateResolver.rate_tables_from_rows(result.scalars().all())

    async def lock_project(self, project_id: UUID) -> Project:
        """Load the project row with ``FOR UPDATE``, held until the transaction ends.

        Invoice creation on one project is serialized on this row lock, so a
        second writer reads the first one's invoices only after it commits.
        SQLite renders no ``FOR UPDATE``; there writers serialize on the
        database lock taken at flush and ``verify_not_overbilled`` rejects
        the one that derived from a stale read.
        """
        result = await self.session.execute(
            select(Project)
            .where(Project.id == project_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise EntityNotFoundError("Project", project_id)
        return project

    async def load_inputs(
        self,
        project_id: UUID,
        worker_id: UUID,
        lock: bool = False,
    ) -> InvoiceInputs:
        if lock:
            project = await self.lock_project(project_id)
        else:
            project = await self.session.get(Project, project_id)
            if project is None:
                raise EntityNotFoundError("Project", project_id)
        worker = await self.session.get(Worker, worker_id)
        if worker is None:
            raise EntityNotFoundError("Worker", worker_id)

        subcontractors = await self.session.execute(
            select(Worker)
            .where(Worker.team_leader_id == worker_id)
            .order_by(Worker.created_at, Worker.last_name, Worker.first_name)
        )
        assignments = await self.session.execute(
            select(Assignment).where(Assignment.project_id == project_id)
        )
        timesheets = await self.session.execute(
            select(TimesheetEntry).where(
                TimesheetEntry.project_id == project_id,
                TimesheetEntry.status == "approved",
            )
        )
        invoices = await self.session.execute(
            select(Invoice)
            .where(Invoice.project_id == project_id)
            .options(selectinload(Invoice.items))
        )
        return InvoiceInputs(
            project=project,
            acting_worker=worker,
            workers=list(subcontractors.scalars().all()),
            assignments=list(assignments.scalars().all()),
            timesheets=list(timesheets.scalars().all()),
            invoices=list(invoices.scalars().all()),
            rate_tables=await self.load_rate_tables(),
        )

    # ----- derivation -----

    def _derive(self, inputs: InvoiceInputs) -> list[InvoiceLineCandidate]:
        return self.deriver.derive(
            project=inputs.project,
            acting_worker=inputs.acting_worker,
            workers=inputs.workers,
            assignments=inputs.assignments,
            timesheets=inputs.timesheets,
            invoices=inputs.invoices,
            rate_tables=inputs.rate_tables,
        )

    async def preview(self, project_id: UUID, worker_id: UUID) -> list[InvoiceLineCandidate]:
        """Lines the worker could invoice now.

        Raises:
            InvoicingNotAllowedError: If the worker is a subcontractor
        """
        return self._derive(await self.load_inputs(project_id, worker_id))

    async def create_invoice(
        self,
        project_id: UUID,
        worker_id: UUID,
        work_specification: str | None = None,
        created_by_name: str | None = None,
        other_costs_amount: Decimal = Decimal("0"),
        other_costs_comment: str | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """Create an invoice from the current derivation and send it for approval.

        The number is ``<project prefix>_<nnnn>`` counting every invoice of
        the project; the issue date is the project's start date. The project
        row stays locked until the caller commits.

        Raises:
            InvoicingNotAllowedError: If the worker is a subcontractor
            OtherCostsCommentRequiredError: If other costs lack a comment
            AlreadyInvoicedError: If a concurrent invoice billed the same work
            ValueError: If there is nothing to invoice or other costs are negative
        """
        inputs = await self.load_inputs(project_id, worker_id, lock=True)
        worker = inputs.acting_worker
        project = inputs.project

        lines = self._derive(inputs)
        other = LineItemBuilder.create_other_costs_line(
            worker.id, worker.full_name, other_costs_amount, other_costs_comment
        )
        if other is not None:
            lines.append(other)
        if not lines:
            raise ValueError(f"Nothing left to invoice on project {project_id}")

        totals = LineItemBuilder.calculate_totals(lines, self.settings.vat_rate)
        assignment = next(
            (a for a in inputs.assignments if a.worker_id == worker.id),
            None,
        )

        InvoiceStateMachine.validate_transition(
            InvoiceStatus.DRAFT, InvoiceStatus.PENDING_APPROVAL
        )
        invoice = Invoice(
            invoice_number=await self._next_number(project, inputs.invoices),
            project_id=project.id,
            worker_id=worker.id,
            assignment_id=assignment.id if assignment else None,
            status=InvoiceStatus.PENDING_APPROVAL.value,
            issue_date=project.start_date,
            work_specification=work_specification,
            work_period=format_work_period(project),
            work_location=project.location,
            created_by_name=created_by_name or worker.full_name,
            notes=notes,
            total_amount=totals.total_amount,
            vat_amount=totals.vat_amount,
            total_with_vat=totals.total_with_vat,
            items=[
                InvoiceItem(position=position, **line.to_item_dict())
                for position, line in enumerate(lines)
            ],
        )
        self.session.add(invoice)
        await self.session.flush()
        await self.verify_not_overbilled(inputs, lines)

        logger.info(
            "Created invoice %s for worker %s on project %s (%d lines, total %s)",
            invoice.invoice_number,
            worker.id,
            project.id,
            len(lines),
            totals.total_with_vat,
        )
        return invoice

    async def verify_not_overbilled(
        self,
        inputs: InvoiceInputs,
        lines: list[InvoiceLineCandidate],
    ) -> None:
        """Re-read the project's invoices and check every billed quantity.

        Each derived line brings its worker and kind up to exactly the
        approved total, so any excess means another invoice captured the
        same work after ``inputs`` were read.

        Raises:
            AlreadyInvoicedError: If a billed quantity exceeds approved work
        """
        project_id = inputs.project.id
        result = await self.session.execute(
            select(Invoice)
            .where(Invoice.project_id == project_id)
            .options(selectinload(Invoice.items))
            .execution_options(populate_existing=True)
        )
        invoiced = self.deriver.invoiced_quantities(project_id, result.scalars().all())
        for line in lines:
            field_name = BILLED_FIELDS.get(line.line_kind)
            if field_name is None:
                continue
            worked = self.deriver.worked_quantities(
                line.worker_id, project_id, inputs.timesheets
            )
            already = invoiced.get(line.worker_id, InvoicedQuantities())
            if getattr(already, field_name) > getattr(worked, field_name):
                logger.warning(
                    "Concurrent invoice on project %s already bills %s of worker %s",
                    project_id,
                    line.line_kind.value,
                    line.worker_id,
                )
                raise AlreadyInvoicedError(project_id, line.worker_id)

    async def _next_number(self, project: Project, invoices: list[Invoice]) -> str:
        """Next free project number; numbers are unique across all projects."""
        prefix = LineItemBuilder.invoice_number_prefix(project)
        result = await self.session.execute(
            select(Invoice.invoice_number).where(
                Invoice.invoice_number.startswith(f"{prefix}_", autoescape=True)
            )
        )
        taken = set(result.scalars().all())
        count = len(invoices)
        number = LineItemBuilder.next_invoice_number(project, count)
        # Deleted invoices leave gaps; skip numbers still in use
        while number in taken:
            count += 1
            number = LineItemBuilder.next_invoice_number(project, count)
        return number

    # ----- workflow -----

    async def transition(
        self,
        invoice_id: UUID,
        to_status: str,
        reason: str | None = None,
    ) -> Invoice:
        """Move an invoice to ``to_status`` and stamp the matching timestamp."""
        invoice = await self.get_invoice(invoice_id)
        InvoiceStateMachine.validate_transition(invoice.status, to_status, reason)

        to_status = InvoiceStatus(to_status)
        if to_status == InvoiceStatus.APPROVED:
            invoice.approved_at = datetime.now(timezone.utc)
        elif to_status == InvoiceStatus.PAID:
            invoice.paid_at = datetime.now(timezone.utc)
        invoice.rejection_reason = reason if to_status == InvoiceStatus.REJECTED else None
        invoice.status = to_status.value

        await self.session.flush()
        logger.info("Invoice %s moved to %s", invoice.invoice_number, to_status.value)
        return invoice

    async def approve(self, invoice_id: UUID) -> Invoice:
        return await self.transition(invoice_id, InvoiceStatus.APPROVED)

    async def reject(self, invoice_id: UUID, reason: str | None) -> Invoice:
        return await self.transition(invoice_id, InvoiceStatus.REJECTED, reason)

    async def mark_paid(self, invoice_id: UUID) -> Invoice:
        return await self.transition(invoice_id, InvoiceStatus.PAID)

    async def delete_invoice(self, invoice_id: UUID) -> None:
        """Delete an invoice that has not been approved yet."""
        invoice = await self.get_invoice(invoice_id)
        if not InvoiceStateMachine.is_editable(invoice.status):
            raise InvalidTransitionError(invoice.status, "deleted", "invoice is already approved")
        await self.session.delete(invoice)
        await self.session.flush()
        logger.info("Deleted invoice %s", invoice.invoice_number)

