"""Tests for the borrow request state machine and the overdue rule."""

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from types import SimpleNamespace

import pytest

from inventory.exceptions import StateError
from inventory.services.state import (
    VALID_TRANSITIONS,
    can_transition,
    display_status,
    is_overdue,
    validate_transition,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=dt_timezone.utc)


class TestTransitions:
    @pytest.mark.parametrize(
        "current,new",
        [
            ("pending", "active"),
            ("pending", "rejected"),
            ("active", "returned"),
        ],
    )
    def test_allowed(self, current, new):
        assert can_transition(current, new)

    @pytest.mark.parametrize(
        "current,new",
        [
            ("pending", "returned"),
            ("active", "rejected"),
            ("active", "pending"),
            ("rejected", "active"),
            ("returned", "active"),
            ("approved", "returned"),
            ("pending", "approved"),
        ],
    )
    def test_disallowed(self, current, new):
        assert not can_transition(current, new)

    def test_no_transition_produces_approved(self):
        targets = {t for ts in VALID_TRANSITIONS.values() for t in ts}
        assert "approved" not in targets

    def test_unknown_status_has_no_transitions(self):
        assert not can_transition("overdue", "returned")

    def test_validate_transition_raises_with_allowed_list(self):
        request = SimpleNamespace(pk=7, status="returned")
        with pytest.raises(StateError, match="from 'returned' to 'active'"):
            validate_transition(request, "active")

    def test_validate_transition_passes(self):
        request = SimpleNamespace(pk=7, status="pending")
        validate_transition(request, "rejected")


class TestOverdue:
    def test_active_past_due_is_overdue(self):
        due = NOW - timedelta(minutes=1)
        assert is_overdue("active", due, NOW)

    def test_active_not_yet_due(self):
        due = NOW + timedelta(days=1)
        assert not is_overdue("active", due, NOW)

    def test_exactly_due_is_not_overdue(self):
        assert not is_overdue("active", NOW, NOW)

    @pytest.mark.parametrize(
        "status", ["pending", "approved", "rejected", "returned"]
    )
    def test_only_active_requests_go_overdue(self, status):
        due = NOW - timedelta(days=30)
        assert not is_overdue(status, due, NOW)

    def test_missing_due_date(self):
        assert not is_overdue("active", None, NOW)

    def test_display_status_overlays_overdue(self):
        due = NOW - timedelta(days=1)
        assert display_status("active", due, NOW) == "overdue"
        assert display_status("pending", due, NOW) == "pending"
        assert (
            display_status("active", NOW + timedelta(days=1), NOW) == "active"
        )
