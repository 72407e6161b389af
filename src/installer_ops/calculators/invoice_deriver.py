"""Derivation of not-yet-invoiced line items from approved timesheets."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from installer_ops.calculators.line_builder import LineItemBuilder, item_value
from installer_ops.calculators.rate_resolver import RateResolver, to_decimal
from installer_ops.calculators.types import (
    InvoicedQuantities,
    InvoiceLineCandidate,
    KmRates,
    VehicleRateTables,
)

logger = logging.getLogger(__name__)

INVOICING_WORKER_TYPES = frozenset({"independent", "team_leader"})
REJECTED_STATUS = "rejected"
APPROVED_STATUS = "approved"


class InvoicingNotAllowedError(Exception):
    """Raised when a worker who may not issue invoices starts one."""

    def __init__(self, worker_id: UUID, worker_type: str | None):
        self.worker_id = worker_id
        self.worker_type = worker_type
        super().__init__(
            f"Worker {worker_id} of type '{worker_type}' cannot create invoices"
        )


@dataclass
class WorkedQuantities:
    """Approved totals for one worker on one project."""

    hours: Decimal = Decimal("0")
    driver_km: Decimal = Decimal("0")
    crew_km: Decimal = Decimal("0")


class InvoiceLineItemDeriver:
    """Computes the billable remainder of approved work on a project.

    Steps:
    1. Sum quantities already on non-rejected invoices of the project, per
       worker and line kind.
    2. Sum approved timesheet hours, driver km and crew km per worker.
    3. Emit a line per kind where worked minus invoiced is positive.

    Invoicing the result and deriving again yields nothing new for the same
    work. A rejected invoice releases its quantities.

    Pure and synchronous; safe to call repeatedly.
    """

    def __init__(self, builder: type[LineItemBuilder] = LineItemBuilder):
        self.builder = builder

    def invoiced_quantities(
        self,
        project_id: UUID,
        invoices: Iterable[Any],
    ) -> dict[UUID, InvoicedQuantities]:
        """Quantities already billed on the project, keyed by worker id."""
        invoiced: dict[UUID, InvoicedQuantities] = {}
        for invoice in invoices:
            if invoice.project_id != project_id or invoice.status == REJECTED_STATUS:
                continue
            for item in invoice.items or []:
                worker_id = item_value(item, "worker_id")
                kind = self.builder.classify_item(item)
                quantity = to_decimal(item_value(item, "quantity"))
                if worker_id is None or kind is None or quantity is None:
                    continue
                invoiced.setdefault(_as_uuid(worker_id), InvoicedQuantities()).add(kind, quantity)
        return invoiced

    @staticmethod
    def worked_quantities(
        worker_id: UUID,
        project_id: UUID,
        timesheets: Iterable[Any],
    ) -> WorkedQuantities:
        """Approved hours and kilometers of a worker on a project."""
        worked = WorkedQuantities()
        for entry in timesheets:
            if (
                entry.worker_id != worker_id
                or entry.project_id != project_id
                or entry.status != APPROVED_STATUS
            ):
                continue
            worked.hours += to_decimal(entry.hours_worked) or Decimal("0")
            worked.driver_km += to_decimal(entry.driver_kilometers) or Decimal("0")
            worked.crew_km += to_decimal(entry.crew_kilometers) or Decimal("0")
        return worked

    @staticmethod
    def billable_workers(acting_worker: Any, workers: Sequence[Any]) -> list[Any]:
        """The acting worker followed by their subcontractors (team leaders only)."""
        worker_type = acting_worker.worker_type
        if worker_type not in INVOICING_WORKER_TYPES:
            raise InvoicingNotAllowedError(acting_worker.id, worker_type)
        billable = [acting_worker]
        if worker_type == "team_leader":
            billable.extend(w for w in workers if w.team_leader_id == acting_worker.id)
        return billable

    def derive(
        self,
        project: Any,
        acting_worker: Any,
        workers: Sequence[Any],
        assignments: Sequence[Any],
        timesheets: Sequence[Any],
        invoices: Sequence[Any],
        rate_tables: VehicleRateTables | None,
    ) -> list[InvoiceLineCandidate]:
        """Return the line items not yet invoiced, ready to submit as invoice items.

        Per worker the order is labor, driver transport, crew transport.
        Lines with no positive remainder are omitted.

        Raises:
            InvoicingNotAllowedError: If the acting worker is a subcontractor
                or has an unknown worker type
        """
        billable = self.billable_workers(acting_worker, workers)
        invoiced = self.invoiced_quantities(project.id, invoices)
        km_rates: KmRates | None = None

        lines: list[InvoiceLineCandidate] = []
        for worker in billable:
            worked = self.worked_quantities(worker.id, project.id, timesheets)
            already = invoiced.get(worker.id, InvoicedQuantities())
            name = f"{worker.first_name} {worker.last_name}"

            remaining_hours = worked.hours - already.hours
            if remaining_hours > 0:
                rate = RateResolver.hourly_rate_for(worker.id, project.id, assignments)
                lines.append(
                    self.builder.create_labor_line(worker.id, name, remaining_hours, rate)
                )

            remaining_driver = worked.driver_km - already.driver_km
            remaining_crew = worked.crew_km - already.crew_km
            if (remaining_driver > 0 or remaining_crew > 0) and km_rates is None:
                km_rates = RateResolver.km_rates_for(project, rate_tables)

            if remaining_driver > 0:
                lines.append(
                    self.builder.create_driver_transport_line(
                        worker.id, name, remaining_driver, km_rates.driver_per_km
                    )
                )
            if remaining_crew > 0:
                lines.append(
                    self.builder.create_crew_transport_line(
                        worker.id, name, remaining_crew, km_rates.crew_per_km
                    )
                )

        logger.debug(
            "Derived %d invoice lines for project %s (worker %s)",
            len(lines),
            project.id,
            acting_worker.id,
        )
        return lines


def _as_uuid(value: Any) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))
