"""Timeline (Gantt) aggregation over projects, workers and vehicles."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import date
from typing import Any
from uuid import UUID

from installer_ops.calculators.collation import czech_sort_key
from installer_ops.calculators.types import (
    ActiveBar,
    DayCell,
    DisplayWindow,
    SortConfig,
    TimelineBar,
    TimelineFilters,
    TimelineRow,
    TimelineView,
)

STATUS_COLORS = {
    "preparing": "rgb(107, 114, 128)",
    "in_progress": "rgb(59, 130, 246)",
    "completed": "rgb(34, 197, 94)",
    "paused": "rgb(251, 146, 60)",
}

STATUS_LABELS = {
    "preparing": "Připravuje se",
    "in_progress": "Probíhá",
    "completed": "Dokončeno",
    "paused": "Pozastaveno",
}

SENIORITY_ORDER = {"junior": 1, "medior": 2, "senior": 3, "specialista": 4}
UNKNOWN_SENIORITY_RANK = 99

# Attributes rows are built from; the memo key covers exactly these
PROJECT_FIELDS = ("id", "name", "location", "status", "start_date", "end_date")
WORKER_FIELDS = ("id", "first_name", "last_name", "availability", "seniority")
VEHICLE_FIELDS = ("id", "brand_model", "license_plate", "status")
ASSIGNMENT_FIELDS = ("id", "project_id", "worker_id", "vehicle_id", "start_date", "end_date")


def _fingerprint(items: Sequence[Any], fields: tuple[str, ...]) -> tuple[Any, ...]:
    return tuple(tuple(getattr(item, name, None) for name in fields) for item in items)


def overlaps_window(start: date | None, end: date | None, window: DisplayWindow) -> bool:
    """Check whether a date range touches the window.

    True when the start or the end lies inside the window, or when the range
    spans the whole window. Open-ended ranges never overlap.
    """
    if start is None or end is None:
        return False
    return (
        window.contains(start)
        or window.contains(end)
        or (start < window.start and end > window.end)
    )


def project_link(project_id: UUID, is_admin: bool) -> str:
    page = "ProjectDetail" if is_admin else "InstallerProjectDetail"
    return f"/{page}?id={project_id}"


def worker_name(worker: Any) -> str:
    return f"{worker.first_name or ''} {worker.last_name or ''}".strip()


def active_bars_for_day(row: TimelineRow, day: date) -> list[TimelineBar]:
    """All bars of a row covering ``day``; overlapping bars stack."""
    return [bar for bar in row.bars if bar.is_active_on(day)]


def build_day_grid(row: TimelineRow, window: DisplayWindow) -> list[DayCell]:
    """Day-by-day occupancy of a row within the window.

    A bar's label is shown only on its first visible day: its start date, or
    the window's first day for bars that began earlier.
    """
    cells = []
    for day in window.days():
        active = [
            ActiveBar(bar=bar, show_label=day == max(bar.start, window.start))
            for bar in active_bars_for_day(row, day)
        ]
        cells.append(DayCell(day=day, bars=active))
    return cells


class TimelineAggregator:
    """Builds timeline rows for one of three resource views.

    Rows:
    - projects: every project overlapping the window whose status passes the
      project status filter; a single bar spanning the project.
    - workers / vehicles: every resource passing its own filters that has at
      least one dated assignment overlapping the window (and, when a project
      status filter is active, at least one assignment on a matching project).
      Bars are the resource's dated assignments on matching projects.

    Assignments pointing at unknown projects are dropped. The last result is
    memoized on a fingerprint of every attribute rows are built from, so
    refetched or edited records are picked up without ``invalidate``. Callers
    get copies and may modify them freely.
    """

    def __init__(self) -> None:
        self._cache_key: tuple[Any, ...] | None = None
        self._cache_rows: list[TimelineRow] = []

    def invalidate(self) -> None:
        self._cache_key = None
        self._cache_rows = []

    def aggregate(
        self,
        view: TimelineView,
        window: DisplayWindow,
        projects: Sequence[Any],
        workers: Sequence[Any],
        vehicles: Sequence[Any],
        assignments: Sequence[Any],
        filters: TimelineFilters | None = None,
        sort: SortConfig | None = None,
        is_admin: bool = False,
    ) -> list[TimelineRow]:
        """Return the ordered rows for ``view`` (empty list when nothing matches)."""
        filters = filters or TimelineFilters()
        sort = sort or SortConfig()
        cache_key = (
            view,
            window.start,
            window.end,
            filters,
            sort,
            is_admin,
            _fingerprint(projects, PROJECT_FIELDS),
            _fingerprint(workers, WORKER_FIELDS),
            _fingerprint(vehicles, VEHICLE_FIELDS),
            _fingerprint(assignments, ASSIGNMENT_FIELDS),
        )
        if cache_key != self._cache_key:
            self._cache_rows = self._build_rows(
                view, window, projects, workers, vehicles, assignments, filters, sort, is_admin
            )
            self._cache_key = cache_key
        return [replace(row, bars=list(row.bars)) for row in self._cache_rows]

    def _build_rows(
        self,
        view: TimelineView,
        window: DisplayWindow,
        projects: Sequence[Any],
        workers: Sequence[Any],
        vehicles: Sequence[Any],
        assignments: Sequence[Any],
        filters: TimelineFilters,
        sort: SortConfig,
        is_admin: bool,
    ) -> list[TimelineRow]:
        projects_by_id = {p.id: p for p in projects}
        valid_assignments = [a for a in assignments if a.project_id in projects_by_id]

        if view == TimelineView.PROJECTS:
            return self._project_rows(projects, window, filters, sort, is_admin)
        if view == TimelineView.WORKERS:
            return self._resource_rows(
                resources=[w for w in workers if self._worker_passes(w, filters)],
                resource_field="worker_id",
                projects_by_id=projects_by_id,
                assignments=valid_assignments,
                window=window,
                filters=filters,
                sort_key=self._worker_sort_key(sort),
                descending=sort.descending,
                make_row=lambda w: TimelineRow(
                    id=w.id, label=worker_name(w), link=f"/WorkerDetail?id={w.id}"
                ),
                is_admin=is_admin,
            )
        if view == TimelineView.VEHICLES:
            return self._resource_rows(
                resources=[v for v in vehicles if self._vehicle_passes(v, filters)],
                resource_field="vehicle_id",
                projects_by_id=projects_by_id,
                assignments=valid_assignments,
                window=window,
                filters=filters,
                sort_key=lambda v: czech_sort_key(v.brand_model),
                descending=sort.descending,
                make_row=lambda v: TimelineRow(
                    id=v.id,
                    label=f"{v.brand_model}",
                    sub_label=v.license_plate,
                    link=f"/VehicleDetail?id={v.id}",
                ),
                is_admin=is_admin,
            )
        return []

    # ----- projects -----

    def _project_rows(
        self,
        projects: Sequence[Any],
        window: DisplayWindow,
        filters: TimelineFilters,
        sort: SortConfig,
        is_admin: bool,
    ) -> list[TimelineRow]:
        visible = [
            p
            for p in projects
            if (not filters.project_statuses or p.status in filters.project_statuses)
            and overlaps_window(p.start_date, p.end_date, window)
        ]
        visible.sort(key=self._project_sort_key(sort), reverse=sort.descending)

        rows = []
        for p in visible:
            link = project_link(p.id, is_admin)
            rows.append(
                TimelineRow(
                    id=p.id,
                    label=p.name,
                    sub_label=p.location,
                    link=link,
                    bars=[
                        TimelineBar(
                            id=f"project-{p.id}",
                            label=p.name,
                            start=p.start_date,
                            end=p.end_date,
                            color=STATUS_COLORS.get(p.status, STATUS_COLORS["preparing"]),
                            link=link,
                        )
                    ],
                )
            )
        return rows

    @staticmethod
    def _project_sort_key(sort: SortConfig) -> Callable[[Any], Any]:
        if sort.key == "start_date":
            return lambda p: (p.start_date is None, p.start_date or date.min)
        if sort.key == "status":
            return lambda p: czech_sort_key(STATUS_LABELS.get(p.status, p.status or ""))
        return lambda p: czech_sort_key(p.name)

    # ----- workers / vehicles -----

    @staticmethod
    def _worker_passes(worker: Any, filters: TimelineFilters) -> bool:
        availability = worker.availability or "available"
        if filters.worker_availabilities and availability not in filters.worker_availabilities:
            return False
        if filters.worker_seniorities and worker.seniority not in filters.worker_seniorities:
            return False
        return True

    @staticmethod
    def _vehicle_passes(vehicle: Any, filters: TimelineFilters) -> bool:
        status = vehicle.status or "active"
        return not filters.vehicle_statuses or status in filters.vehicle_statuses

    @staticmethod
    def _worker_sort_key(sort: SortConfig) -> Callable[[Any], Any]:
        if sort.key == "seniority":
            return lambda w: SENIORITY_ORDER.get(w.seniority, UNKNOWN_SENIORITY_RANK)
        return lambda w: czech_sort_key(worker_name(w))

    def _resource_rows(
        self,
        resources: list[Any],
        resource_field: str,
        projects_by_id: dict[Any, Any],
        assignments: list[Any],
        window: DisplayWindow,
        filters: TimelineFilters,
        sort_key: Callable[[Any], Any],
        descending: bool,
        make_row: Callable[[Any], TimelineRow],
        is_admin: bool,
    ) -> list[TimelineRow]:
        by_resource: dict[Any, list[Any]] = {}
        for a in assignments:
            resource_id = getattr(a, resource_field)
            if resource_id is not None:
                by_resource.setdefault(resource_id, []).append(a)

        def status_matches(a: Any) -> bool:
            if not filters.project_statuses:
                return True
            return projects_by_id[a.project_id].status in filters.project_statuses

        qualified = []
        for resource in resources:
            own = by_resource.get(resource.id, [])
            if filters.project_statuses and not any(status_matches(a) for a in own):
                continue
            if not any(overlaps_window(a.start_date, a.end_date, window) for a in own):
                continue
            qualified.append(resource)
        qualified.sort(key=sort_key, reverse=descending)

        rows = []
        for resource in qualified:
            row = make_row(resource)
            for a in by_resource.get(resource.id, []):
                if a.start_date is None or a.end_date is None or not status_matches(a):
                    continue
                project = projects_by_id[a.project_id]
                row.bars.append(
                    TimelineBar(
                        id=f"assignment-{a.id}",
                        label=project.name,
                        start=a.start_date,
                        end=a.end_date,
                        color=STATUS_COLORS.get(project.status, STATUS_COLORS["preparing"]),
                        link=project_link(project.id, is_admin),
                    )
                )
            rows.append(row)
        return rows
