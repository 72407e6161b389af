"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from installer_ops.config import get_settings
from installer_ops.database import init_db
from installer_ops.models import AppUser
from installer_ops.services.certificate_buffer import LocalFileStore
from installer_ops.services.session_context import SessionContext


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, factory = init_db()
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def _parse_uuid(value: str, header: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        )


async def get_session_context(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    x_user_id: Annotated[str | None, Header()] = None,
    x_acting_as_worker: Annotated[str | None, Header()] = None,
) -> SessionContext:
    """Resolve the caller's effective role once per request."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )
    user = await db.get(AppUser, _parse_uuid(x_user_id, "X-User-ID"))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    acting_as = (
        _parse_uuid(x_acting_as_worker, "X-Acting-As-Worker") if x_acting_as_worker else None
    )
    return SessionContext.for_user(user, acting_as_worker_id=acting_as)


def get_file_store() -> LocalFileStore:
    return LocalFileStore(get_settings().upload_dir)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentSession = Annotated[SessionContext, Depends(get_session_context)]
FileStore = Annotated[LocalFileStore, Depends(get_file_store)]
