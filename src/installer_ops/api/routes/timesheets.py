"""Timesheet API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from installer_ops.api.dependencies import CurrentSession, DbSession
from installer_ops.api.schemas import (
    ErrorResponse,
    ExistingHoursResponse,
    RejectionRequest,
    RevertRequest,
    TimesheetEntryCreate,
    TimesheetEntryResponse,
    TimesheetSaveResponse,
)
from installer_ops.errors import PermissionDeniedError
from installer_ops.services.timesheet_service import TimesheetService

router = APIRouter(prefix="/timesheets", tags=["timesheets"])


@router.get("", response_model=list[TimesheetEntryResponse])
async def list_entries(
    db: DbSession,
    session: CurrentSession,
    worker_id: UUID | None = None,
    project_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[TimesheetEntryResponse]:
    """Admins may filter by any worker; installers see their own entries."""
    if not session.is_admin:
        worker_id = session.require_worker("list timesheets")
    entries = await TimesheetService(db).list_entries(worker_id, project_id, status_filter)
    return [TimesheetEntryResponse.model_validate(e) for e in entries]


@router.get("/existing-hours", response_model=ExistingHoursResponse)
async def existing_hours(
    db: DbSession,
    session: CurrentSession,
    work_date: Annotated[date, Query(alias="date")],
    exclude_entry_id: UUID | None = None,
) -> ExistingHoursResponse:
    """Hours the acting worker already logged on a day."""
    worker_id = session.require_worker("check logged hours")
    service = TimesheetService(db)
    existing = await service.existing_hours(worker_id, work_date, exclude_entry_id)
    return ExistingHoursResponse(
        worker_id=worker_id,
        date=work_date,
        existing_hours=existing,
        remaining_hours=service.validator.remaining(existing),
    )


async def _save(
    db: DbSession,
    session: CurrentSession,
    payload: TimesheetEntryCreate,
    entry_id: UUID | None = None,
) -> TimesheetSaveResponse:
    worker_id = session.require_worker("log hours")
    service = TimesheetService(db)
    if entry_id is not None:
        current = await service.get_entry(entry_id)
        if current.worker_id != worker_id:
            raise PermissionDeniedError("edit this entry", session.effective_role.value)
    entry = await service.save_entry(
        worker_id=worker_id,
        project_id=payload.project_id,
        work_date=payload.date,
        hours_worked=payload.hours_worked,
        driver_kilometers=payload.driver_kilometers,
        crew_kilometers=payload.crew_kilometers,
        notes=payload.notes,
        status=payload.status,
        entry_id=entry_id,
    )
    outside = await service.is_outside_assignment(worker_id, payload.project_id, payload.date)
    response = TimesheetSaveResponse(
        entry=TimesheetEntryResponse.model_validate(entry),
        outside_assignment=outside,
    )
    await db.commit()
    return response


@router.post(
    "",
    response_model=TimesheetSaveResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_entry(
    db: DbSession,
    session: CurrentSession,
    payload: TimesheetEntryCreate,
) -> TimesheetSaveResponse:
    """Log hours; the daily limit counts every entry of the day."""
    return await _save(db, session, payload)


@router.put(
    "/{entry_id}",
    response_model=TimesheetSaveResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_entry(
    db: DbSession,
    session: CurrentSession,
    entry_id: Annotated[UUID, Path()],
    payload: TimesheetEntryCreate,
) -> TimesheetSaveResponse:
    return await _save(db, session, payload, entry_id)


@router.post("/{entry_id}/submit", response_model=TimesheetEntryResponse)
async def submit_entry(
    db: DbSession,
    session: CurrentSession,
    entry_id: Annotated[UUID, Path()],
) -> TimesheetEntryResponse:
    worker_id = session.require_worker("submit timesheets")
    service = TimesheetService(db)
    entry = await service.get_entry(entry_id)
    if entry.worker_id != worker_id:
        raise PermissionDeniedError("submit this entry", session.effective_role.value)
    entry = await service.submit(entry_id)
    response = TimesheetEntryResponse.model_validate(entry)
    await db.commit()
    return response


@router.post("/{entry_id}/approve", response_model=TimesheetEntryResponse)
async def approve_entry(
    db: DbSession,
    session: CurrentSession,
    entry_id: Annotated[UUID, Path()],
) -> TimesheetEntryResponse:
    session.require_admin("approve timesheets")
    entry = await TimesheetService(db).approve(entry_id)
    response = TimesheetEntryResponse.model_validate(entry)
    await db.commit()
    return response


@router.post("/{entry_id}/reject", response_model=TimesheetEntryResponse)
async def reject_entry(
    db: DbSession,
    session: CurrentSession,
    entry_id: Annotated[UUID, Path()],
    payload: RejectionRequest,
) -> TimesheetEntryResponse:
    session.require_admin("reject timesheets")
    entry = await TimesheetService(db).reject(entry_id, payload.reason)
    response = TimesheetEntryResponse.model_validate(entry)
    await db.commit()
    return response


@router.post("/{entry_id}/revert", response_model=TimesheetEntryResponse)
async def revert_entry(
    db: DbSession,
    session: CurrentSession,
    entry_id: Annotated[UUID, Path()],
    payload: RevertRequest,
) -> TimesheetEntryResponse:
    """Return an approved entry to the worker for correction."""
    session.require_admin("revert timesheets")
    entry = await TimesheetService(db).revert(entry_id, payload.reason)
    response = TimesheetEntryResponse.model_validate(entry)
    await db.commit()
    return response
