"""Errors shared by services and the API layer."""

from __future__ import annotations

from typing import Any


class EntityNotFoundError(Exception):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class PermissionDeniedError(Exception):
    """Raised when the effective role may not perform an action."""

    def __init__(self, action: str, role: str | None):
        self.action = action
        self.role = role
        super().__init__(f"Role '{role}' is not allowed to {action}")
