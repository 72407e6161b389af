"""Integration test fixtures with a seeded database and HTTP client."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from installer_ops.api.app import create_app
from installer_ops.api.dependencies import get_db_session, get_file_store
from installer_ops.models import AppUser
from installer_ops.services.certificate_buffer import LocalFileStore
from tests.factories import (
    make_assignment,
    make_project,
    make_rates,
    make_timesheet,
    make_vehicle,
    make_worker,
)

# Fixture UUIDs
PROJECT_ID = UUID("6a1f0e2c-6a4b-4d2b-9c61-3f1c7a0e1001")
WORKER_ID = UUID("6a1f0e2c-6a4b-4d2b-9c61-3f1c7a0e2001")
LEADER_ID = UUID("6a1f0e2c-6a4b-4d2b-9c61-3f1c7a0e2002")
SUBCONTRACTOR_ID = UUID("6a1f0e2c-6a4b-4d2b-9c61-3f1c7a0e2003")
VEHICLE_ID = UUID("6a1f0e2c-6a4b-4d2b-9c61-3f1c7a0e3001")
ADMIN_USER_ID = UUID("6a1f0e2c-6a4b-4d2b-9c61-3f1c7a0e4001")
INSTALLER_USER_ID = UUID("6a1f0e2c-6a4b-4d2b-9c61-3f1c7a0e4002")
SUBCONTRACTOR_USER_ID = UUID("6a1f0e2c-6a4b-4d2b-9c61-3f1c7a0e4003")

WORK_DAY = date(2026, 10, 6)


@dataclass
class Seed:
    project_id: UUID = PROJECT_ID
    worker_id: UUID = WORKER_ID
    leader_id: UUID = LEADER_ID
    subcontractor_id: UUID = SUBCONTRACTOR_ID
    vehicle_id: UUID = VEHICLE_ID


@pytest_asyncio.fixture
async def seeded_db(session_factory: async_sessionmaker[AsyncSession]) -> Seed:
    """Commit a project with an independent installer, a team and a vehicle.

    The installer has 8 approved hours at 300/h and 120 driver km.
    """
    project = make_project(id=PROJECT_ID)
    worker = make_worker(id=WORKER_ID)
    leader = make_worker(
        id=LEADER_ID, first_name="Karel", last_name="Dvořák", worker_type="team_leader"
    )
    sub = make_worker(
        id=SUBCONTRACTOR_ID,
        first_name="Ota",
        last_name="Malý",
        worker_type="subcontractor",
        team_leader_id=LEADER_ID,
        seniority="junior",
    )
    vehicle = make_vehicle(id=VEHICLE_ID)

    async with session_factory() as session:
        session.add_all([project, worker, leader, vehicle, make_rates()])
        await session.flush()
        session.add(sub)
        session.add_all(
            [
                make_assignment(project, worker_id=WORKER_ID, hourly_rate=Decimal("300")),
                make_assignment(project, worker_id=LEADER_ID, hourly_rate=Decimal("400")),
                make_assignment(project, worker_id=SUBCONTRACTOR_ID, hourly_rate=Decimal("250")),
                make_assignment(project, vehicle_id=VEHICLE_ID, hourly_rate=None),
                make_timesheet(worker, project, driver_kilometers=Decimal("120")),
                make_timesheet(leader, project, hours_worked=Decimal("4")),
                make_timesheet(sub, project, hours_worked=Decimal("6")),
                AppUser(
                    id=ADMIN_USER_ID,
                    email="admin@example.com",
                    app_role="admin",
                    preferences={},
                ),
                AppUser(
                    id=INSTALLER_USER_ID,
                    email="jan.novak@example.com",
                    app_role="installer",
                    worker_profile_id=WORKER_ID,
                    preferences={},
                ),
                AppUser(
                    id=SUBCONTRACTOR_USER_ID,
                    email="ota.maly@example.com",
                    app_role="installer",
                    worker_profile_id=SUBCONTRACTOR_ID,
                    preferences={},
                ),
            ]
        )
        await session.commit()
    return Seed()


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession], tmp_path
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_file_store] = lambda: LocalFileStore(tmp_path)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def as_user(user_id: UUID, acting_as: UUID | None = None) -> dict[str, str]:
    headers = {"X-User-Id": str(user_id)}
    if acting_as is not None:
        headers["X-Acting-As-Worker"] = str(acting_as)
    return headers


ADMIN = as_user(ADMIN_USER_ID)
INSTALLER = as_user(INSTALLER_USER_ID)
SUBCONTRACTOR = as_user(SUBCONTRACTOR_USER_ID)
