"""Hourly and per-km rate resolution for invoice lines."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from installer_ops.calculators.types import KmRates, VehicleRateTables

logger = logging.getLogger(__name__)

DOMESTIC_COUNTRIES = frozenset({"Česká republika", "Czech Republic"})

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal | None:
    """Coerce stored numbers (int, float, str, Decimal) to Decimal; None if unusable."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


class RateResolver:
    """Resolves the prices applied to derived invoice lines.

    Rate sources:
    - hourly rate: the first assignment binding the worker to the project
    - km rates: the domestic or international vehicle rate table, chosen once
      per project by its country (unset counts as domestic)

    Missing reference data never raises. The rate falls back to zero and a
    warning is logged, so the resulting line is under-billed but visible.
    """

    @staticmethod
    def is_domestic(project: Any) -> bool:
        country = getattr(project, "country", None)
        return not country or country in DOMESTIC_COUNTRIES

    @staticmethod
    def rate_tables_from_rows(rows: Iterable[Any]) -> VehicleRateTables:
        """Build rate tables from stored global rate rows.

        The row flagged as default wins, otherwise the first row. No rows
        yields zero rates.
        """
        rows = list(rows)
        if not rows:
            logger.warning("No global rate table configured; km rates default to 0")
            return VehicleRateTables()
        active = next((r for r in rows if getattr(r, "is_default", False)), rows[0])
        return VehicleRateTables(
            domestic=RateResolver._km_rates(active.vehicle_rates_domestic),
            international=RateResolver._km_rates(active.vehicle_rates_international),
        )

    @staticmethod
    def _km_rates(data: Mapping[str, Any] | None) -> KmRates:
        data = data or {}
        return KmRates(
            driver_per_km=to_decimal(data.get("driver_per_km")) or ZERO,
            crew_per_km=to_decimal(data.get("crew_per_km")) or ZERO,
        )

    @classmethod
    def km_rates_for(cls, project: Any, tables: VehicleRateTables | None) -> KmRates:
        """Select the km rate table applying to every worker on the project's invoice."""
        if tables is None:
            logger.warning(
                "Vehicle rate tables missing for project %s; km rates default to 0",
                getattr(project, "id", None),
            )
            return KmRates()
        return tables.domestic if cls.is_domestic(project) else tables.international

    @staticmethod
    def hourly_rate_for(
        worker_id: UUID,
        project_id: UUID,
        assignments: Iterable[Any],
    ) -> Decimal:
        """Hourly rate from the worker's assignment on the project.

        Returns zero (and logs) when there is no assignment or it has no rate.
        """
        for assignment in assignments:
            if assignment.worker_id == worker_id and assignment.project_id == project_id:
                rate = to_decimal(assignment.hourly_rate)
                if rate is not None:
                    return rate
                break
        logger.warning(
            "No hourly rate for worker %s on project %s; billing at 0",
            worker_id,
            project_id,
        )
        return ZERO
