"""Pytest fixtures for installer ops tests."""

from __future__ import annotations

from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from installer_ops.models import AppUser, Assignment, Base, GlobalRates, Project, Worker
from tests.factories import make_assignment, make_project, make_rates, make_worker

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ===== Database =====


@pytest_asyncio.fixture
async def engine():
    """Create a fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ===== Seeded records =====


@pytest_asyncio.fixture
async def test_project(session: AsyncSession) -> Project:
    project = make_project()
    session.add(project)
    await session.flush()
    return project


@pytest_asyncio.fixture
async def test_worker(session: AsyncSession) -> Worker:
    worker = make_worker()
    session.add(worker)
    await session.flush()
    return worker


@pytest_asyncio.fixture
async def test_assignment(
    session: AsyncSession, test_project: Project, test_worker: Worker
) -> Assignment:
    assignment = make_assignment(test_project, worker_id=test_worker.id)
    session.add(assignment)
    await session.flush()
    return assignment


@pytest_asyncio.fixture
async def test_rates(session: AsyncSession) -> GlobalRates:
    rates = make_rates()
    session.add(rates)
    await session.flush()
    return rates


@pytest_asyncio.fixture
async def admin_user(session: AsyncSession) -> AppUser:
    user = AppUser(id=uuid4(), email="admin@example.com", app_role="admin", preferences={})
    session.add(user)
    await session.flush()
    return user


@pytest_asyncio.fixture
async def installer_user(session: AsyncSession, test_worker: Worker) -> AppUser:
    user = AppUser(
        id=uuid4(),
        email="jan.novak@example.com",
        app_role="installer",
        worker_profile_id=test_worker.id,
        preferences={},
    )
    session.add(user)
    await session.flush()
    return user
