"""Timeline (Gantt) endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Query
from sqlalchemy import select

from installer_ops.api.dependencies import CurrentSession, DbSession
from installer_ops.api.schemas import (
    DayCellBar,
    DayCellResponse,
    TimelineBarResponse,
    TimelinePreferencesPayload,
    TimelineResponse,
    TimelineRowResponse,
)
from installer_ops.calculators import (
    TimelineAggregator,
    build_day_grid,
    compute_window,
    shift_anchor,
)
from installer_ops.calculators.types import (
    SortConfig,
    TimelineFilters,
    TimelinePreferences,
    TimelineView,
    ViewMode,
)
from installer_ops.models import AppUser, Assignment, Project, Vehicle, Worker

router = APIRouter(prefix="/timeline", tags=["timeline"])

# Shared across requests; repeated identical views skip the rebuild
_aggregator = TimelineAggregator()


def _override(values: list[str] | None, saved: frozenset[str]) -> frozenset[str]:
    return frozenset(values) if values is not None else saved


@router.get("", response_model=TimelineResponse)
async def get_timeline(
    db: DbSession,
    session: CurrentSession,
    anchor: date | None = None,
    view_mode: ViewMode | None = None,
    view: TimelineView | None = None,
    sort: str | None = None,
    project_status: Annotated[list[str] | None, Query()] = None,
    worker_availability: Annotated[list[str] | None, Query()] = None,
    worker_seniority: Annotated[list[str] | None, Query()] = None,
    vehicle_status: Annotated[list[str] | None, Query()] = None,
    include_cells: bool = False,
) -> TimelineResponse:
    """Rows for one week or month.

    Parameters left out fall back to the caller's saved preferences.
    """
    prefs = session.preferences
    anchor = anchor or date.today()
    view_mode = view_mode or prefs.view_mode
    view = view or prefs.view
    sort_config = SortConfig.parse(sort) if sort else prefs.sort
    saved = prefs.filters
    filters = TimelineFilters(
        project_statuses=_override(project_status, saved.project_statuses),
        worker_availabilities=_override(worker_availability, saved.worker_availabilities),
        worker_seniorities=_override(worker_seniority, saved.worker_seniorities),
        vehicle_statuses=_override(vehicle_status, saved.vehicle_statuses),
    )

    window = compute_window(anchor, view_mode)
    projects = (await db.execute(select(Project))).scalars().all()
    workers = (await db.execute(select(Worker))).scalars().all()
    vehicles = (await db.execute(select(Vehicle))).scalars().all()
    assignments = (await db.execute(select(Assignment))).scalars().all()

    rows = _aggregator.aggregate(
        view,
        window,
        projects,
        workers,
        vehicles,
        assignments,
        filters=filters,
        sort=sort_config,
        is_admin=session.is_admin,
    )

    response_rows = []
    for row in rows:
        cells = None
        if include_cells:
            cells = [
                DayCellResponse(
                    day=cell.day,
                    bars=[
                        DayCellBar(bar_id=active.bar.id, show_label=active.show_label)
                        for active in cell.bars
                    ],
                )
                for cell in build_day_grid(row, window)
            ]
        response_rows.append(
            TimelineRowResponse(
                id=row.id,
                label=row.label,
                sub_label=row.sub_label,
                link=row.link,
                bars=[TimelineBarResponse.model_validate(bar) for bar in row.bars],
                cells=cells,
            )
        )

    return TimelineResponse(
        title=window.title,
        view_mode=view_mode,
        view=view,
        window_start=window.start,
        window_end=window.end,
        previous_anchor=shift_anchor(anchor, view_mode, -1),
        next_anchor=shift_anchor(anchor, view_mode, 1),
        filters_active=filters.is_active_for(view),
        rows=response_rows,
    )


@router.get("/preferences", response_model=TimelinePreferencesPayload)
async def get_preferences(session: CurrentSession) -> TimelinePreferencesPayload:
    """Saved timeline view state of the caller."""
    return TimelinePreferencesPayload.model_validate(session.preferences.to_dict())


@router.put("/preferences", response_model=TimelinePreferencesPayload)
async def save_preferences(
    db: DbSession,
    session: CurrentSession,
    payload: TimelinePreferencesPayload,
) -> TimelinePreferencesPayload:
    """Persist the caller's timeline view state."""
    prefs = TimelinePreferences.from_dict(payload.model_dump(mode="json"))
    user = await db.get(AppUser, session.user_id)
    # JSON columns only track reassignment
    user.preferences = {**(user.preferences or {}), "timeline": prefs.to_dict()}
    await db.commit()
    return TimelinePreferencesPayload.model_validate(prefs.to_dict())
