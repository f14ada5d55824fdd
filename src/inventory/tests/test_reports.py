"""Tests for dashboard and report aggregation."""

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

import pytest

from inventory.factories import (
    AuditLogFactory,
    BorrowRequestFactory,
    InventoryItemFactory,
    UserFactory,
)
from inventory.services import reports

NOW = datetime(2026, 3, 31, 12, 0, tzinfo=dt_timezone.utc)


def _item(pk, **kwargs):
    return InventoryItemFactory.build(pk=pk, **kwargs)


def _user(pk, **kwargs):
    return UserFactory.build(pk=pk, **kwargs)


def _request(pk, item, borrower, **kwargs):
    kwargs.setdefault("created_at", NOW - timedelta(days=1))
    kwargs.setdefault("expected_return_date", NOW + timedelta(days=3))
    return BorrowRequestFactory.build(
        pk=pk, item=item, borrower=borrower, department=None, **kwargs
    )


def _log(pk, user, action="created", entity_type="item", **kwargs):
    kwargs.setdefault("timestamp", NOW - timedelta(hours=pk))
    return AuditLogFactory.build(
        pk=pk, user=user, action=action, entity_type=entity_type, **kwargs
    )


class TestRates:
    def test_empty_collections_give_zero(self):
        assert reports.utilization_rate([]) == 0
        assert reports.approval_rate([]) == 0

    def test_utilization_rate(self):
        items = [
            _item(1, status="borrowed"),
            _item(2, status="available"),
            _item(3, status="maintenance"),
            _item(4, status="borrowed"),
        ]
        assert reports.utilization_rate(items) == 0.5

    def test_approval_rate_counts_active_and_legacy_approved(self):
        item, user = _item(1), _user(1)
        requests = [
            _request(1, item, user, status="active"),
            _request(2, item, user, status="approved"),
            _request(3, item, user, status="rejected"),
            _request(4, item, user, status="pending"),
        ]
        assert reports.approval_rate(requests) == 0.5


class TestDashboardStats:
    def test_counts(self):
        items = [
            _item(1, status="available"),
            _item(2, status="borrowed"),
            _item(3, status="borrowed"),
        ]
        user = _user(1)
        requests = [
            _request(1, items[0], user, status="pending"),
            _request(
                2,
                items[1],
                user,
                status="active",
                expected_return_date=NOW - timedelta(days=1),
            ),
            _request(3, items[2], user, status="active"),
            _request(
                4,
                items[0],
                user,
                status="returned",
                expected_return_date=NOW - timedelta(days=9),
            ),
        ]
        stats = reports.dashboard_stats(items, requests, NOW)
        assert stats == {
            "total_items": 3,
            "available_items": 1,
            "borrowed_items": 2,
            "maintenance_items": 0,
            "retired_items": 0,
            "pending_requests": 1,
            "overdue_requests": 1,
        }

    def test_empty(self):
        stats = reports.dashboard_stats([], [], NOW)
        assert stats["total_items"] == 0
        assert stats["overdue_requests"] == 0

    def test_counts_every_status(self):
        items = [
            _item(1, status="maintenance"),
            _item(2, status="retired"),
            _item(3, status="retired"),
        ]
        stats = reports.dashboard_stats(items, [], NOW)
        assert stats["maintenance_items"] == 1
        assert stats["retired_items"] == 2
        assert stats["available_items"] == 0


class TestBreakdowns:
    def test_category_stats(self):
        items = [
            _item(
                1,
                category="Laptops",
                status="available",
                purchase_price=Decimal("1000.00"),
            ),
            _item(
                2, category="Laptops", status="borrowed", purchase_price=None
            ),
            _item(
                3,
                category="Cameras",
                status="retired",
                purchase_price=Decimal("250.50"),
            ),
        ]
        stats = reports.category_stats(items)
        assert stats["Laptops"] == {
            "total": 2,
            "available": 1,
            "borrowed": 1,
            "value": Decimal("1000.00"),
        }
        assert stats["Cameras"]["total"] == 1
        assert stats["Cameras"]["available"] == 0

    def test_condition_breakdown(self):
        items = [
            _item(1, condition="good"),
            _item(2, condition="poor"),
            _item(3, condition="good"),
        ]
        assert reports.condition_breakdown(items) == {"good": 2, "poor": 1}

    def test_total_asset_value_treats_missing_price_as_zero(self):
        items = [
            _item(1, purchase_price=Decimal("10.50")),
            _item(2, purchase_price=None),
            _item(3, purchase_price=Decimal("4.50")),
        ]
        assert reports.total_asset_value(items) == Decimal("15.00")

    def test_category_values_share(self):
        items = [
            _item(1, category="A", purchase_price=Decimal("75")),
            _item(2, category="B", purchase_price=Decimal("25")),
        ]
        shares = {
            entry["category"]: entry["percentage"]
            for entry in reports.category_values(items)
        }
        assert shares == {"A": 75.0, "B": 25.0}

    def test_category_values_with_no_prices(self):
        items = [_item(1, category="A", purchase_price=None)]
        assert reports.category_values(items)[0]["percentage"] == 0.0

    def test_top_categories_limited_to_five(self):
        items = []
        for pk, category in enumerate("AABBBCDEFG", start=1):
            items.append(_item(pk, category=category))
        top = reports.top_categories(items)
        assert [entry["category"] for entry in top] == [
            "B",
            "A",
            "C",
            "D",
            "E",
        ]

    def test_borrowing_trends_by_month(self, settings):
        settings.TIME_ZONE = "UTC"
        item, user = _item(1), _user(1)
        requests = [
            _request(1, item, user, created_at=NOW),
            _request(2, item, user, created_at=NOW - timedelta(days=1)),
            _request(3, item, user, created_at=NOW - timedelta(days=40)),
        ]
        assert reports.borrowing_trends(requests) == {"Mar": 2, "Feb": 1}

    def test_activity_by_type(self):
        user = _user(1)
        logs = [
            _log(1, user, "created", "item"),
            _log(2, user, "created", "item"),
            _log(3, user, "updated", "request"),
        ]
        assert reports.activity_by_type(logs) == {
            "created_item": 2,
            "updated_request": 1,
        }


class TestRankings:
    def test_rank_is_stable_and_drops_zero(self):
        records = ["a", "b", "c", "d"]
        counts = {"a": 1, "b": 3, "c": 1, "d": 0}
        ranked = reports.rank(records, counts.get, limit=10)
        assert ranked == [("b", 3), ("a", 1), ("c", 1)]

    def test_rank_truncates(self):
        records = list(range(20))
        ranked = reports.rank(records, lambda r: 1, limit=10)
        assert [r for r, _ in ranked] == list(range(10))

    def test_top_borrowers(self):
        alice = _user(1, name="Alice")
        bob = _user(2, name="Bob")
        carol = _user(3, name="Carol")
        item = _item(1)
        requests = [
            _request(1, item, bob),
            _request(2, item, alice),
            _request(3, item, bob),
        ]
        top = reports.top_borrowers([alice, bob, carol], requests)
        assert [(e["name"], e["borrow_count"]) for e in top] == [
            ("Bob", 2),
            ("Alice", 1),
        ]

    def test_most_borrowed_items(self):
        user = _user(1)
        first, second = _item(1, name="First"), _item(2, name="Second")
        requests = [
            _request(1, second, user),
            _request(2, first, user),
        ]
        top = reports.most_borrowed_items([first, second], requests)
        assert [e["name"] for e in top] == ["First", "Second"]

    def test_most_active_users(self):
        alice, bob = _user(1, name="Alice"), _user(2, name="Bob")
        logs = [_log(1, bob), _log(2, bob), _log(3, alice)]
        top = reports.most_active_users([alice, bob], logs)
        assert [(e["name"], e["activity_count"]) for e in top] == [
            ("Bob", 2),
            ("Alice", 1),
        ]

    def test_recent_activity_newest_first(self):
        alice = _user(1, name="Alice")
        logs = [
            _log(pk, alice, timestamp=NOW - timedelta(hours=20 - pk))
            for pk in range(1, 16)
        ]
        recent = reports.recent_activity(logs, [alice])
        assert len(recent) == 10
        assert [e["id"] for e in recent] == list(range(15, 5, -1))
        assert recent[0]["user_name"] == "Alice"

    def test_recent_activity_unknown_user(self):
        ghost = _user(99)
        recent = reports.recent_activity([_log(1, ghost)], [])
        assert recent[0]["user_name"] == "Unknown User"


class TestWindows:
    def test_week(self):
        assert reports.window_start("week", NOW) == NOW - timedelta(days=7)

    def test_month_clamps_to_shorter_month(self):
        # 31 March minus one month is the last day of February
        start = reports.window_start("month", NOW)
        assert (start.year, start.month, start.day) == (2026, 2, 28)

    def test_quarter(self):
        start = reports.window_start("quarter", NOW)
        assert (start.year, start.month, start.day) == (2025, 12, 31)

    def test_year(self):
        start = reports.window_start("year", NOW)
        assert (start.year, start.month, start.day) == (2025, 3, 31)

    def test_unknown_range(self):
        with pytest.raises(ValueError, match="Unknown date range"):
            reports.window_start("decade", NOW)


class TestBuildReport:
    def _snapshot(self):
        alice = _user(1, name="Alice")
        laptop = _item(
            1, category="Laptops", purchase_price=Decimal("900.00")
        )
        camera = _item(2, category="Cameras", purchase_price=None)
        requests = [
            _request(1, laptop, alice, created_at=NOW - timedelta(days=2)),
            _request(2, camera, alice, created_at=NOW - timedelta(days=20)),
            _request(3, camera, alice, created_at=NOW - timedelta(days=200)),
        ]
        logs = [
            _log(1, alice, timestamp=NOW - timedelta(days=1)),
            _log(2, alice, timestamp=NOW - timedelta(days=100)),
        ]
        return {
            "items": [laptop, camera],
            "requests": requests,
            "users": [alice],
            "audit_logs": logs,
        }

    def test_week_window_filters_requests_and_logs(self):
        report = reports.build_report(self._snapshot(), "week", NOW)
        assert report["total_requests"] == 1
        assert report["total_actions"] == 1
        assert report["total_items"] == 2
        assert [e["id"] for e in report["most_borrowed_items"]] == [1]

    def test_year_window(self):
        report = reports.build_report(self._snapshot(), "year", NOW)
        assert report["total_requests"] == 3
        assert report["top_borrowers"][0]["borrow_count"] == 3
        assert [e["id"] for e in report["most_borrowed_items"]] == [2, 1]

    def test_financials(self):
        report = reports.build_report(self._snapshot(), "month", NOW)
        assert report["total_asset_value"] == Decimal("900.00")
        assert report["average_item_value"] == Decimal("450.00")

    def test_admin_dashboard(self):
        dashboard = reports.admin_dashboard(self._snapshot(), NOW)
        assert dashboard["total_value"] == Decimal("900.00")
        assert dashboard["utilization_rate"] == 0
        assert dashboard["approval_rate"] == 0
        assert dashboard["pending_request_ids"] == [1, 2, 3]
        assert dashboard["top_borrowers"][0]["borrow_count"] == 3
        assert dashboard["users_by_role"] == {"staff": 1}
