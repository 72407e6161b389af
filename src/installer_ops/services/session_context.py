"""Per-request session context: effective role, acting-as override and preferences."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from installer_ops.calculators.types import TimelinePreferences
from installer_ops.errors import PermissionDeniedError


class Role(str, Enum):
    """Application role of a user."""

    ADMIN = "admin"
    INSTALLER = "installer"
    PENDING = "pending"

    @classmethod
    def from_stored(cls, value: str | None) -> Role:
        """Map a stored role; missing or unknown roles are pending."""
        try:
            return cls(value) if value else cls.PENDING
        except ValueError:
            return cls.PENDING


@dataclass(frozen=True)
class SessionContext:
    """Who is acting, resolved once per request.

    An admin acting as a worker is treated as an installer bound to that
    worker until the override is cleared. The override is ignored for
    everyone else.
    """

    user_id: UUID | None
    role: Role
    worker_profile_id: UUID | None = None
    acting_as_worker_id: UUID | None = None
    preferences: TimelinePreferences = field(default_factory=TimelinePreferences)

    @classmethod
    def for_user(cls, user: Any, acting_as_worker_id: UUID | None = None) -> SessionContext:
        """Build the context for a stored user row."""
        return cls(
            user_id=user.id,
            role=Role.from_stored(user.app_role),
            worker_profile_id=user.worker_profile_id,
            acting_as_worker_id=acting_as_worker_id,
            preferences=TimelinePreferences.from_dict(
                (user.preferences or {}).get("timeline")
            ),
        )

    @classmethod
    def anonymous(cls) -> SessionContext:
        return cls(user_id=None, role=Role.PENDING)

    @property
    def is_acting_as(self) -> bool:
        return self.role == Role.ADMIN and self.acting_as_worker_id is not None

    @property
    def effective_role(self) -> Role:
        if self.is_acting_as:
            return Role.INSTALLER
        return self.role

    @property
    def effective_worker_id(self) -> UUID | None:
        if self.is_acting_as:
            return self.acting_as_worker_id
        if self.role == Role.INSTALLER:
            return self.worker_profile_id
        return None

    @property
    def is_admin(self) -> bool:
        return self.effective_role == Role.ADMIN

    def require_admin(self, action: str) -> None:
        """Raise PermissionDeniedError unless the effective role is admin."""
        if not self.is_admin:
            raise PermissionDeniedError(action, self.effective_role.value)

    def require_worker(self, action: str) -> UUID:
        """Return the effective worker id, or raise when there is none."""
        worker_id = self.effective_worker_id
        if worker_id is None:
            raise PermissionDeniedError(action, self.effective_role.value)
        return worker_id
