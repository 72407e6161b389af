"""Tests for the per-request session context."""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from installer_ops.calculators.types import (
    SortDirection,
    TimelinePreferences,
    TimelineView,
    ViewMode,
)
from installer_ops.errors import PermissionDeniedError
from installer_ops.services.session_context import Role, SessionContext


def make_user(role, worker_profile_id=None, preferences=None):
    return SimpleNamespace(
        id=uuid4(),
        app_role=role,
        worker_profile_id=worker_profile_id,
        preferences=preferences,
    )


class TestRoles:
    """Test effective role resolution."""

    @pytest.mark.parametrize("stored", [None, "", "superuser"])
    def test_unknown_roles_are_pending(self, stored):
        assert Role.from_stored(stored) == Role.PENDING

    def test_installer_acts_as_own_worker(self):
        worker_id = uuid4()
        context = SessionContext.for_user(make_user("installer", worker_profile_id=worker_id))

        assert context.effective_role == Role.INSTALLER
        assert context.effective_worker_id == worker_id
        assert context.is_admin is False

    def test_admin_has_no_worker(self):
        context = SessionContext.for_user(make_user("admin"))

        assert context.is_admin is True
        assert context.effective_worker_id is None
        with pytest.raises(PermissionDeniedError):
            context.require_worker("create invoices")

    def test_admin_acting_as_worker_becomes_installer(self):
        worker_id = uuid4()
        context = SessionContext.for_user(make_user("admin"), acting_as_worker_id=worker_id)

        assert context.is_acting_as is True
        assert context.effective_role == Role.INSTALLER
        assert context.require_worker("create invoices") == worker_id
        with pytest.raises(PermissionDeniedError):
            context.require_admin("approve invoices")

    def test_override_is_ignored_for_installers(self):
        own = uuid4()
        context = SessionContext.for_user(
            make_user("installer", worker_profile_id=own), acting_as_worker_id=uuid4()
        )

        assert context.is_acting_as is False
        assert context.effective_worker_id == own

    def test_pending_user_can_do_nothing(self):
        context = SessionContext.anonymous()

        with pytest.raises(PermissionDeniedError):
            context.require_admin("approve timesheets")
        with pytest.raises(PermissionDeniedError):
            context.require_worker("log hours")


class TestPreferences:
    """Test timeline preferences carried by the context."""

    def test_defaults_without_stored_preferences(self):
        context = SessionContext.for_user(make_user("admin"))

        assert context.preferences == TimelinePreferences()
        assert context.preferences.view_mode == ViewMode.MONTH

    def test_stored_preferences_are_restored(self):
        stored = {
            "timeline": {
                "view_mode": "week",
                "view": "workers",
                "sort": {"key": "seniority", "direction": "desc"},
                "filters": {"worker_availabilities": ["available"]},
            }
        }

        prefs = SessionContext.for_user(make_user("admin", preferences=stored)).preferences

        assert prefs.view_mode == ViewMode.WEEK
        assert prefs.view == TimelineView.WORKERS
        assert prefs.sort.key == "seniority"
        assert prefs.sort.direction == SortDirection.DESC
        assert prefs.filters.worker_availabilities == frozenset({"available"})

    def test_unreadable_values_fall_back_to_defaults(self):
        prefs = TimelinePreferences.from_dict({"view_mode": "year", "view": "trucks"})

        assert prefs.view_mode == ViewMode.MONTH
        assert prefs.view == TimelineView.PROJECTS

    def test_round_trip(self):
        prefs = TimelinePreferences.from_dict(
            {"view": "vehicles", "filters": {"vehicle_statuses": ["active", "in_service"]}}
        )

        assert TimelinePreferences.from_dict(prefs.to_dict()) == prefs
