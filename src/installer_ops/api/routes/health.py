"""Health check endpoints."""

import logging
import os
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from installer_ops.api.dependencies import DbSession
from installer_ops.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """API, database and upload storage state."""

    status: str
    timestamp: datetime
    database: str
    uploads: str
    version: str


async def _database_state(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        return "unhealthy"
    return "healthy"


def _uploads_state() -> str:
    upload_dir = get_settings().upload_dir
    if not os.path.isdir(upload_dir):
        # Created on first upload
        return "missing"
    return "healthy" if os.access(upload_dir, os.W_OK) else "read_only"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report the API as degraded when the database is unreachable."""
    database = await _database_state(db)
    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        uploads=_uploads_state(),
        version=get_settings().app_version,
    )


@router.get("/ready")
async def readiness_check(db: DbSession, response: Response) -> dict[str, str]:
    """Ready once the database answers; 503 otherwise."""
    if await _database_state(db) != "healthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unavailable"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
