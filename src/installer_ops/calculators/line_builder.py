"""Invoice line item builder."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from installer_ops.calculators.types import InvoiceLineCandidate, InvoiceTotals, LineKind


class OtherCostsCommentRequiredError(Exception):
    """Raised when a nonzero other-costs amount has no explanatory comment."""

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"Other costs of {amount} require a comment")


class LineItemBuilder:
    """Builds priced invoice lines.

    Description and unit pairs are stable: invoices stored before lines
    carried ``line_kind`` are still classified by them.

    Rounding:
    - quantities and unit prices are kept as given
    - line totals and invoice totals are rounded to cents (half up)
    """

    OUTPUT_PRECISION = Decimal("0.01")

    LABOR_DESCRIPTION = "Cena za dílo"
    LABOR_UNIT = "hod"
    DRIVER_TRANSPORT_DESCRIPTION = "Přeprava - řidič"
    CREW_TRANSPORT_DESCRIPTION = "Přeprava - posádka"
    KM_UNIT = "km"
    OTHER_COSTS_DESCRIPTION = "Ostatní náklady"
    PIECE_UNIT = "ks"

    LEGACY_KINDS: dict[tuple[str, str], LineKind] = {
        (LABOR_UNIT, LABOR_DESCRIPTION): LineKind.LABOR,
        (KM_UNIT, DRIVER_TRANSPORT_DESCRIPTION): LineKind.DRIVER_TRANSPORT,
        (KM_UNIT, CREW_TRANSPORT_DESCRIPTION): LineKind.CREW_TRANSPORT,
    }

    INVOICE_NUMBER_FALLBACK_PREFIX = "PROJ"

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(LineItemBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def _line(
        worker_id: UUID | None,
        worker_name: str,
        description: str,
        quantity: Decimal,
        unit: str,
        unit_price: Decimal,
        line_kind: LineKind,
        comment: str | None = None,
    ) -> InvoiceLineCandidate:
        return InvoiceLineCandidate(
            worker_id=worker_id,
            worker_name=worker_name,
            description=description,
            quantity=quantity,
            unit=unit,
            unit_price=unit_price,
            total_price=LineItemBuilder.round_to_cents(quantity * unit_price),
            line_kind=line_kind,
            comment=comment,
        )

    @staticmethod
    def create_labor_line(
        worker_id: UUID,
        worker_name: str,
        hours: Decimal,
        hourly_rate: Decimal,
    ) -> InvoiceLineCandidate:
        """Create a labor line priced per hour."""
        return LineItemBuilder._line(
            worker_id,
            worker_name,
            LineItemBuilder.LABOR_DESCRIPTION,
            hours,
            LineItemBuilder.LABOR_UNIT,
            hourly_rate,
            LineKind.LABOR,
        )

    @staticmethod
    def create_driver_transport_line(
        worker_id: UUID,
        worker_name: str,
        kilometers: Decimal,
        rate_per_km: Decimal,
    ) -> InvoiceLineCandidate:
        """Create a transport line for kilometers driven as the driver."""
        return LineItemBuilder._line(
            worker_id,
            worker_name,
            LineItemBuilder.DRIVER_TRANSPORT_DESCRIPTION,
            kilometers,
            LineItemBuilder.KM_UNIT,
            rate_per_km,
            LineKind.DRIVER_TRANSPORT,
        )

    @staticmethod
    def create_crew_transport_line(
        worker_id: UUID,
        worker_name: str,
        kilometers: Decimal,
        rate_per_km: Decimal,
    ) -> InvoiceLineCandidate:
        """Create a transport line for kilometers travelled as crew."""
        return LineItemBuilder._line(
            worker_id,
            worker_name,
            LineItemBuilder.CREW_TRANSPORT_DESCRIPTION,
            kilometers,
            LineItemBuilder.KM_UNIT,
            rate_per_km,
            LineKind.CREW_TRANSPORT,
        )

    @staticmethod
    def create_other_costs_line(
        worker_id: UUID | None,
        worker_name: str,
        amount: Decimal,
        comment: str | None,
    ) -> InvoiceLineCandidate | None:
        """Create the manually entered other-costs line.

        Returns None for a zero amount. A nonzero amount must be explained.

        Raises:
            ValueError: If the amount is negative
            OtherCostsCommentRequiredError: If a nonzero amount has no comment
        """
        if amount < 0:
            raise ValueError(f"Other costs cannot be negative: {amount}")
        if amount == 0:
            return None
        if not comment or not comment.strip():
            raise OtherCostsCommentRequiredError(amount)
        return LineItemBuilder._line(
            worker_id,
            worker_name,
            LineItemBuilder.OTHER_COSTS_DESCRIPTION,
            Decimal("1"),
            LineItemBuilder.PIECE_UNIT,
            amount,
            LineKind.OTHER,
            comment=comment.strip(),
        )

    @staticmethod
    def classify_item(item: Any) -> LineKind | None:
        """Return the line kind of a stored item.

        Items carrying ``line_kind`` use it. Older items are matched on the
        exact unit and description; anything else is unclassified.
        """
        kind = item_value(item, "line_kind")
        if kind:
            try:
                return LineKind(kind)
            except ValueError:
                return None
        legacy_key = (item_value(item, "unit"), item_value(item, "description"))
        return LineItemBuilder.LEGACY_KINDS.get(legacy_key)

    @staticmethod
    def calculate_totals(
        lines: Iterable[Any],
        vat_rate: Decimal = Decimal("0"),
    ) -> InvoiceTotals:
        """Sum line totals and apply VAT, each rounded to cents."""
        total = sum(
            (Decimal(str(item_value(line, "total_price") or 0)) for line in lines),
            Decimal("0"),
        )
        total = LineItemBuilder.round_to_cents(total)
        vat = LineItemBuilder.round_to_cents(total * vat_rate)
        return InvoiceTotals(total_amount=total, vat_amount=vat, total_with_vat=total + vat)

    @staticmethod
    def invoice_number_prefix(project: Any) -> str:
        """The project number, else the part of the project name before the first underscore."""
        prefix = getattr(project, "project_number", None)
        if not prefix:
            name = getattr(project, "name", None) or ""
            prefix = name.split("_")[0]
        return prefix or LineItemBuilder.INVOICE_NUMBER_FALLBACK_PREFIX

    @staticmethod
    def next_invoice_number(project: Any, existing_count: int) -> str:
        """Build the next sequential number, e.g. ``P1_0003`` for the third invoice."""
        return f"{LineItemBuilder.invoice_number_prefix(project)}_{existing_count + 1:04d}"


def item_value(item: Any, key: str) -> Any:
    """Read a field from a stored item or a plain dict."""
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)
