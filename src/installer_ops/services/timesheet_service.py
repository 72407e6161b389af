"""Timesheet entry service: daily limit checks, debounced lookups and approval flow."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from installer_ops.config import Settings, get_settings
from installer_ops.errors import EntityNotFoundError
from installer_ops.models import Assignment, TimesheetEntry
from installer_ops.services.state_machine import (
    InvalidTransitionError,
    TimesheetStateMachine,
    TimesheetStatus,
)

logger = logging.getLogger(__name__)

MAX_ENTRY_HOURS = Decimal("24")
DEFAULT_REVERT_REASON = "Výkaz byl vrácen k úpravám."


class DailyHoursExceededError(Exception):
    """Raised when an entry would push a worker's day over the limit."""

    def __init__(
        self,
        worker_id: UUID | None,
        work_date: date | None,
        existing: Decimal,
        requested: Decimal,
        limit: Decimal,
    ):
        self.worker_id = worker_id
        self.work_date = work_date
        self.existing = existing
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"{existing + requested}h on {work_date} exceeds the daily limit of {limit}h "
            f"({existing}h already logged)"
        )


class DailyHoursValidator:
    """Validates hours against the per-worker daily limit.

    Existing hours count every entry of the worker on that day regardless of
    status or project, except the entry being edited.
    """

    def __init__(self, limit: Decimal = MAX_ENTRY_HOURS):
        self.limit = limit

    @staticmethod
    def existing_hours(
        entries: Iterable[Any],
        worker_id: UUID,
        work_date: date,
        exclude_entry_id: UUID | None = None,
    ) -> Decimal:
        total = Decimal("0")
        for entry in entries:
            if entry.worker_id != worker_id or entry.date != work_date:
                continue
            if exclude_entry_id is not None and entry.id == exclude_entry_id:
                continue
            total += Decimal(str(entry.hours_worked or 0))
        return total

    def remaining(self, existing: Decimal) -> Decimal:
        """Hours still allowed on the day (never negative)."""
        return max(self.limit - existing, Decimal("0"))

    def validate(
        self,
        existing: Decimal,
        requested: Decimal,
        worker_id: UUID | None = None,
        work_date: date | None = None,
    ) -> None:
        """Raise ValueError for out-of-range hours, DailyHoursExceededError over the limit."""
        if requested < 0 or requested > MAX_ENTRY_HOURS:
            raise ValueError(f"Hours must be between 0 and {MAX_ENTRY_HOURS}, got {requested}")
        if existing + requested > self.limit:
            raise DailyHoursExceededError(worker_id, work_date, existing, requested, self.limit)


def is_outside_assignment(
    work_date: date,
    worker_id: UUID,
    project_id: UUID,
    assignments: Iterable[Any],
) -> bool:
    """Whether a date falls outside all of the worker's assignments on the project.

    Only a warning for the worker; saving is never blocked. No assignment at
    all counts as outside.
    """
    own = [a for a in assignments if a.project_id == project_id and a.worker_id == worker_id]
    if not own:
        return True
    return not any(
        a.start_date is not None
        and a.end_date is not None
        and a.start_date <= work_date <= a.end_date
        for a in own
    )


HoursFetcher = Callable[[UUID, date, UUID | None], Awaitable[Decimal]]


class HoursCheckDebouncer:
    """Delays the existing-hours lookup while the worker or date keeps changing.

    Each ``schedule`` cancels the pending check before starting a new one, so
    only the last request within the delay reaches the store. A failing
    lookup is logged and reported as zero existing hours.

    Form drivers hold one per open timesheet form, built with
    ``TimesheetService.hours_check``. The ``/timesheets/existing-hours``
    endpoint answers every request at once; clients calling it over HTTP
    debounce on their side.
    """

    def __init__(self, fetch: HoursFetcher, delay: float | None = None):
        self.fetch = fetch
        self.delay = get_settings().hours_check_debounce_seconds if delay is None else delay
        self._pending: asyncio.Task[Decimal] | None = None
        self.last_result: Decimal = Decimal("0")

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def schedule(
        self,
        worker_id: UUID,
        work_date: date,
        exclude_entry_id: UUID | None = None,
    ) -> asyncio.Task[Decimal]:
        """Start a delayed lookup, superseding any pending one."""
        self.cancel()
        self._pending = asyncio.create_task(self._run(worker_id, work_date, exclude_entry_id))
        return self._pending

    async def _run(
        self,
        worker_id: UUID,
        work_date: date,
        exclude_entry_id: UUID | None,
    ) -> Decimal:
        await asyncio.sleep(self.delay)
        try:
            result = await self.fetch(worker_id, work_date, exclude_entry_id)
        except Exception:
            logger.exception(
                "Existing hours check failed for worker %s on %s", worker_id, work_date
            )
            result = Decimal("0")
        self.last_result = result
        return result


class TimesheetService:
    """Service for timesheet entries.

    Operations:
    - existing_hours: hours already logged by a worker on a day
    - save_entry: create or update with the daily limit enforced
    - submit / approve / reject / revert: status workflow
    """

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.validator = DailyHoursValidator(self.settings.daily_hours_limit)

    async def get_entry(self, entry_id: UUID) -> TimesheetEntry:
        entry = await self.session.get(TimesheetEntry, entry_id)
        if entry is None:
            raise EntityNotFoundError("TimesheetEntry", entry_id)
        return entry

    async def list_entries(
        self,
        worker_id: UUID | None = None,
        project_id: UUID | None = None,
        status: str | None = None,
    ) -> list[TimesheetEntry]:
        query = select(TimesheetEntry).order_by(TimesheetEntry.date.desc())
        if worker_id is not None:
            query = query.where(TimesheetEntry.worker_id == worker_id)
        if project_id is not None:
            query = query.where(TimesheetEntry.project_id == project_id)
        if status is not None:
            query = query.where(TimesheetEntry.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def existing_hours(
        self,
        worker_id: UUID,
        work_date: date,
        exclude_entry_id: UUID | None = None,
    ) -> Decimal:
        result = await self.session.execute(
            select(TimesheetEntry).where(
                TimesheetEntry.worker_id == worker_id,
                TimesheetEntry.date == work_date,
            )
        )
        return self.validator.existing_hours(
            result.scalars().all(), worker_id, work_date, exclude_entry_id
        )

    def hours_check(self, delay: float | None = None) -> HoursCheckDebouncer:
        """Debounced ``existing_hours`` for a form editing entries of this session."""
        return HoursCheckDebouncer(self.existing_hours, delay)

    async def is_outside_assignment(
        self,
        worker_id: UUID,
        project_id: UUID,
        work_date: date,
    ) -> bool:
        result = await self.session.execute(
            select(Assignment).where(
                Assignment.worker_id == worker_id,
                Assignment.project_id == project_id,
            )
        )
        return is_outside_assignment(work_date, worker_id, project_id, result.scalars().all())

    async def save_entry(
        self,
        worker_id: UUID,
        project_id: UUID,
        work_date: date,
        hours_worked: Decimal,
        driver_kilometers: Decimal | None = None,
        crew_kilometers: Decimal | None = None,
        notes: str | None = None,
        status: str = TimesheetStatus.DRAFT,
        entry_id: UUID | None = None,
    ) -> TimesheetEntry:
        """Create an entry, or update ``entry_id``.

        Editing a rejected entry returns it to draft and clears the rejection
        reason. Approved entries cannot be edited.

        Raises:
            DailyHoursExceededError: If the day's total would exceed the limit
            InvalidTransitionError: If the entry is no longer editable
        """
        existing = await self.existing_hours(worker_id, work_date, exclude_entry_id=entry_id)
        self.validator.validate(existing, hours_worked, worker_id, work_date)

        if entry_id is None:
            if status not in (TimesheetStatus.DRAFT, TimesheetStatus.SUBMITTED):
                raise InvalidTransitionError("new", status, "entries start as draft or submitted")
            entry = TimesheetEntry(
                worker_id=worker_id,
                project_id=project_id,
                status=TimesheetStatus(status).value,
            )
            self.session.add(entry)
        else:
            entry = await self.get_entry(entry_id)
            if not TimesheetStateMachine.is_editable(entry.status):
                raise InvalidTransitionError(entry.status, entry.status, "entry is locked")
            if entry.status == TimesheetStatus.REJECTED:
                entry.status = TimesheetStatus.DRAFT
                entry.rejection_reason = None
            entry.project_id = project_id

        entry.date = work_date
        entry.hours_worked = hours_worked
        entry.driver_kilometers = driver_kilometers
        entry.crew_kilometers = crew_kilometers
        entry.notes = notes
        await self.session.flush()
        logger.info("Saved timesheet entry %s for worker %s on %s", entry.id, worker_id, work_date)
        return entry

    async def transition(
        self,
        entry_id: UUID,
        to_status: str,
        reason: str | None = None,
    ) -> TimesheetEntry:
        """Move an entry to ``to_status``; rejection stores the reason."""
        entry = await self.get_entry(entry_id)
        TimesheetStateMachine.validate_transition(entry.status, to_status, reason)
        entry.status = TimesheetStatus(to_status).value
        entry.rejection_reason = reason if to_status == TimesheetStatus.REJECTED else None
        await self.session.flush()
        logger.info("Timesheet entry %s moved to %s", entry_id, to_status)
        return entry

    async def submit(self, entry_id: UUID) -> TimesheetEntry:
        return await self.transition(entry_id, TimesheetStatus.SUBMITTED)

    async def approve(self, entry_id: UUID) -> TimesheetEntry:
        return await self.transition(entry_id, TimesheetStatus.APPROVED)

    async def reject(self, entry_id: UUID, reason: str | None) -> TimesheetEntry:
        return await self.transition(entry_id, TimesheetStatus.REJECTED, reason)

    async def revert(self, entry_id: UUID, reason: str | None = None) -> TimesheetEntry:
        """Return an approved entry to the worker for correction."""
        return await self.transition(
            entry_id, TimesheetStatus.REJECTED, reason or DEFAULT_REVERT_REASON
        )
