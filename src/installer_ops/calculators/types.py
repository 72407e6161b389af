"""Type definitions for the timeline and invoicing calculators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


# ===== Timeline =====


class ViewMode(str, Enum):
    """Width of the displayed calendar window."""

    WEEK = "week"
    MONTH = "month"


class TimelineView(str, Enum):
    """Resource collection rendered as timeline rows."""

    PROJECTS = "projects"
    WORKERS = "workers"
    VEHICLES = "vehicles"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class DisplayWindow:
    """Inclusive date range shown on the timeline."""

    start: date
    end: date
    title: str
    view_mode: ViewMode

    def days(self) -> list[date]:
        """Every calendar day in the window, in order."""
        count = (self.end - self.start).days + 1
        return [self.start + timedelta(days=offset) for offset in range(count)]

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


@dataclass(frozen=True)
class SortConfig:
    """Row ordering; unknown keys fall back to name."""

    key: str = "name"
    direction: SortDirection = SortDirection.ASC

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC

    @classmethod
    def parse(cls, value: str) -> SortConfig:
        """Parse the ``<key>_<direction>`` form used by sort selectors."""
        key, _, direction = value.rpartition("_")
        if not key or direction not in (SortDirection.ASC.value, SortDirection.DESC.value):
            return cls(key=value or "name")
        return cls(key=key, direction=SortDirection(direction))


@dataclass(frozen=True)
class TimelineFilters:
    """Allowed enum values per attribute. Empty set means no filtering."""

    project_statuses: frozenset[str] = frozenset()
    worker_availabilities: frozenset[str] = frozenset()
    worker_seniorities: frozenset[str] = frozenset()
    vehicle_statuses: frozenset[str] = frozenset()

    def is_active_for(self, view: TimelineView) -> bool:
        """Whether any filter applies to the given view."""
        if view == TimelineView.PROJECTS:
            return bool(self.project_statuses)
        if view == TimelineView.WORKERS:
            return bool(
                self.project_statuses or self.worker_availabilities or self.worker_seniorities
            )
        return bool(self.project_statuses or self.vehicle_statuses)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "project_statuses": sorted(self.project_statuses),
            "worker_availabilities": sorted(self.worker_availabilities),
            "worker_seniorities": sorted(self.worker_seniorities),
            "vehicle_statuses": sorted(self.vehicle_statuses),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TimelineFilters:
        data = data or {}
        return cls(
            project_statuses=frozenset(data.get("project_statuses") or ()),
            worker_availabilities=frozenset(data.get("worker_availabilities") or ()),
            worker_seniorities=frozenset(data.get("worker_seniorities") or ()),
            vehicle_statuses=frozenset(data.get("vehicle_statuses") or ()),
        )


@dataclass(frozen=True)
class TimelineBar:
    """A colored date range drawn inside a row."""

    id: str
    label: str
    start: date
    end: date
    color: str
    link: str

    def is_active_on(self, day: date) -> bool:
        """Active from the start day 00:00:00 through the end day 23:59:59."""
        return self.start <= day <= self.end


@dataclass
class TimelineRow:
    """One resource (project, worker or vehicle) on the timeline."""

    id: UUID
    label: str
    link: str
    sub_label: str | None = None
    bars: list[TimelineBar] = field(default_factory=list)


@dataclass(frozen=True)
class ActiveBar:
    """A bar occupying a day cell; the label is drawn on its first visible day only."""

    bar: TimelineBar
    show_label: bool


@dataclass
class DayCell:
    day: date
    bars: list[ActiveBar] = field(default_factory=list)

    @property
    def is_occupied(self) -> bool:
        return bool(self.bars)


@dataclass
class TimelinePreferences:
    """Per-user timeline state persisted between sessions."""

    view_mode: ViewMode = ViewMode.MONTH
    view: TimelineView = TimelineView.PROJECTS
    sort: SortConfig = field(default_factory=SortConfig)
    filters: TimelineFilters = field(default_factory=TimelineFilters)

    def to_dict(self) -> dict[str, Any]:
        return {
            "view_mode": self.view_mode.value,
            "view": self.view.value,
            "sort": {"key": self.sort.key, "direction": self.sort.direction.value},
            "filters": self.filters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TimelinePreferences:
        """Restore preferences; unreadable values fall back to defaults."""
        data = data or {}
        sort_data = data.get("sort") or {}
        try:
            view_mode = ViewMode(data.get("view_mode", ViewMode.MONTH.value))
        except ValueError:
            view_mode = ViewMode.MONTH
        try:
            view = TimelineView(data.get("view", TimelineView.PROJECTS.value))
        except ValueError:
            view = TimelineView.PROJECTS
        try:
            direction = SortDirection(sort_data.get("direction", SortDirection.ASC.value))
        except ValueError:
            direction = SortDirection.ASC
        return cls(
            view_mode=view_mode,
            view=view,
            sort=SortConfig(key=sort_data.get("key") or "name", direction=direction),
            filters=TimelineFilters.from_dict(data.get("filters")),
        )


# ===== Invoicing =====


class LineKind(str, Enum):
    """Invoice line discriminator stored alongside the display description."""

    LABOR = "labor"
    DRIVER_TRANSPORT = "driver_transport"
    CREW_TRANSPORT = "crew_transport"
    OTHER = "other"


@dataclass
class InvoiceLineCandidate:
    """A priced invoice line before persistence."""

    worker_id: UUID | None
    worker_name: str
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    total_price: Decimal
    line_kind: LineKind
    comment: str | None = None

    def to_item_dict(self) -> dict[str, Any]:
        """Shape submitted unmodified as an invoice item."""
        return {
            "worker_id": self.worker_id,
            "worker_name": self.worker_name,
            "description": self.description,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "line_kind": self.line_kind.value,
            "comment": self.comment,
        }


@dataclass(frozen=True)
class KmRates:
    """Per-kilometer rates for the driver and for each crew member."""

    driver_per_km: Decimal = Decimal("0")
    crew_per_km: Decimal = Decimal("0")


@dataclass(frozen=True)
class VehicleRateTables:
    domestic: KmRates = field(default_factory=KmRates)
    international: KmRates = field(default_factory=KmRates)


@dataclass
class InvoicedQuantities:
    """Quantities already captured by non-rejected invoices for one worker."""

    hours: Decimal = Decimal("0")
    driver_km: Decimal = Decimal("0")
    crew_km: Decimal = Decimal("0")

    def add(self, kind: LineKind, quantity: Decimal) -> None:
        if kind == LineKind.LABOR:
            self.hours += quantity
        elif kind == LineKind.DRIVER_TRANSPORT:
            self.driver_km += quantity
        elif kind == LineKind.CREW_TRANSPORT:
            self.crew_km += quantity


@dataclass(frozen=True)
class InvoiceTotals:
    total_amount: Decimal
    vat_amount: Decimal
    total_with_vat: Decimal
