"""Application user model."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from installer_ops.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class AppUser(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Authenticated user; installers are linked to a worker profile."""

    __tablename__ = "app_user"

    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    app_role: Mapped[str | None] = mapped_column(String, nullable=True)
    worker_profile_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("worker.id", ondelete="SET NULL"),
        nullable=True,
    )
    preferences: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint(
            "app_role IS NULL OR app_role IN ('admin', 'installer', 'pending')",
            name="app_user_role_check",
        ),
    )
