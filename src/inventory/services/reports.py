"""Dashboard and report aggregation.

Every function here is a pure function of already-loaded records (usually
from ``InventoryStore.snapshot()``) and a ``now``. Nothing is cached; each
dashboard or report read recomputes from scratch.
"""

import calendar
from collections import Counter
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from .state import is_overdue

DASHBOARD_TOP_N = 5
REPORT_TOP_N = 10
RECENT_ACTIVITY_LIMIT = 10

DATE_RANGES = ("week", "month", "quarter", "year")
DEFAULT_DATE_RANGE = "month"


def _ratio(numerator, denominator):
    if not denominator:
        return 0.0
    return numerator / denominator


def _months_before(moment, months):
    """Same day ``months`` earlier, clamped to the end of shorter months."""
    month_index = moment.year * 12 + moment.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def window_start(date_range, now=None):
    """Return the start of a report window ending at ``now``."""
    now = now or timezone.now()
    if date_range == "week":
        return now - timedelta(days=7)
    if date_range == "month":
        return _months_before(now, 1)
    if date_range == "quarter":
        return _months_before(now, 3)
    if date_range == "year":
        return _months_before(now, 12)
    raise ValueError(
        f"Unknown date range {date_range!r}; "
        f"expected one of {', '.join(DATE_RANGES)}."
    )


# --- Counts and rates ---


def dashboard_stats(items, requests, now=None):
    now = now or timezone.now()
    statuses = Counter(item.status for item in items)
    return {
        "total_items": len(items),
        "available_items": statuses["available"],
        "borrowed_items": statuses["borrowed"],
        "maintenance_items": statuses["maintenance"],
        "retired_items": statuses["retired"],
        "pending_requests": sum(1 for r in requests if r.status == "pending"),
        "overdue_requests": len(overdue_requests(requests, now)),
    }


def overdue_requests(requests, now=None):
    now = now or timezone.now()
    return [
        r
        for r in requests
        if is_overdue(r.status, r.expected_return_date, now)
    ]


def utilization_rate(items):
    """Fraction of items currently borrowed; 0 when there are no items."""
    borrowed = sum(1 for item in items if item.status == "borrowed")
    return _ratio(borrowed, len(items))


def approval_rate(requests):
    """Fraction of requests that were approved; 0 when there are none.

    Approved requests are stored as ``active`` (or the legacy ``approved``).
    """
    approved = sum(1 for r in requests if r.status in ("approved", "active"))
    return _ratio(approved, len(requests))


# --- Breakdowns ---


def category_breakdown(items):
    """Item count per category, in first-seen order."""
    return dict(Counter(item.category for item in items))


def condition_breakdown(items):
    return dict(Counter(item.condition for item in items))


def category_stats(items):
    stats = {}
    for item in items:
        entry = stats.setdefault(
            item.category,
            {"total": 0, "available": 0, "borrowed": 0, "value": Decimal(0)},
        )
        entry["total"] += 1
        if item.status == "available":
            entry["available"] += 1
        elif item.status == "borrowed":
            entry["borrowed"] += 1
        entry["value"] += item.purchase_price or Decimal(0)
    return stats


def top_categories(items, limit=DASHBOARD_TOP_N):
    counts = category_breakdown(items)
    ranked = sorted(counts.items(), key=lambda pair: -pair[1])
    return [
        {"category": category, "count": count}
        for category, count in ranked[:limit]
    ]


def total_asset_value(items):
    """Sum of purchase prices; items without a price count as zero."""
    return sum(
        (item.purchase_price or Decimal(0) for item in items), Decimal(0)
    )


def category_values(items):
    total = total_asset_value(items)
    return [
        {
            "category": category,
            "value": entry["value"],
            "percentage": (
                float(entry["value"] / total * 100) if total else 0.0
            ),
        }
        for category, entry in category_stats(items).items()
    ]


def borrowing_trends(requests):
    """Request count per creation month, keyed by abbreviated month name."""
    counts = {}
    for r in requests:
        label = timezone.localtime(r.created_at).strftime("%b")
        counts[label] = counts.get(label, 0) + 1
    return counts


def activity_by_type(logs):
    counts = {}
    for log in logs:
        key = f"{log.action}_{log.entity_type}"
        counts[key] = counts.get(key, 0) + 1
    return counts


# --- Rankings ---


def rank(records, count_for, limit):
    """Rank ``records`` by ``count_for(record)``, highest first.

    Ties keep the records' original order; zero counts are dropped.
    """
    counted = [(record, count_for(record)) for record in records]
    counted = [pair for pair in counted if pair[1] > 0]
    counted.sort(key=lambda pair: -pair[1])
    return counted[:limit]


def _user_entry(user, key, count):
    return {
        "id": user.pk,
        "name": user.get_display_name(),
        "email": user.email,
        "department_id": user.department_id,
        key: count,
    }


def top_borrowers(users, requests, limit=REPORT_TOP_N):
    counts = Counter(r.borrower_id for r in requests)
    return [
        _user_entry(user, "borrow_count", count)
        for user, count in rank(users, lambda u: counts[u.pk], limit)
    ]


def most_borrowed_items(items, requests, limit=REPORT_TOP_N):
    counts = Counter(r.item_id for r in requests)
    return [
        {
            "id": item.pk,
            "name": item.name,
            "category": item.category,
            "borrow_count": count,
        }
        for item, count in rank(items, lambda i: counts[i.pk], limit)
    ]


def most_active_users(users, logs, limit=REPORT_TOP_N):
    counts = Counter(log.user_id for log in logs)
    return [
        _user_entry(user, "activity_count", count)
        for user, count in rank(users, lambda u: counts[u.pk], limit)
    ]


def recent_activity(logs, users, limit=RECENT_ACTIVITY_LIMIT):
    """The last ``limit`` audit entries, newest first, with actor names."""
    names = {user.pk: user.get_display_name() for user in users}
    entries = []
    for log in reversed(logs[-limit:] if limit else []):
        entries.append(
            {
                "id": log.pk,
                "action": log.action,
                "entity_type": log.entity_type,
                "entity_id": log.entity_id,
                "details": log.details,
                "timestamp": log.timestamp,
                "user_name": names.get(log.user_id, "Unknown User"),
            }
        )
    return entries


# --- Composite views ---


def admin_dashboard(snapshot, now=None):
    """Analytics for the admin dashboard."""
    now = now or timezone.now()
    items = snapshot["items"]
    requests = snapshot["requests"]
    users = snapshot["users"]
    return {
        "stats": dashboard_stats(items, requests, now),
        "total_value": total_asset_value(items),
        "utilization_rate": utilization_rate(items),
        "approval_rate": approval_rate(requests),
        "top_categories": top_categories(items),
        "top_borrowers": top_borrowers(users, requests, DASHBOARD_TOP_N),
        "recent_activity": recent_activity(snapshot["audit_logs"], users),
        "overdue_request_ids": [
            r.pk for r in overdue_requests(requests, now)
        ],
        "pending_request_ids": [
            r.pk for r in requests if r.status == "pending"
        ],
        "users_by_role": dict(Counter(user.role for user in users)),
    }


def build_report(snapshot, date_range=DEFAULT_DATE_RANGE, now=None):
    """Inventory, usage, financial and activity figures for one window.

    Requests are windowed on ``created_at`` and audit logs on
    ``timestamp``; inventory figures always cover every item.
    """
    now = now or timezone.now()
    start = window_start(date_range, now)
    items = snapshot["items"]
    users = snapshot["users"]
    requests = [r for r in snapshot["requests"] if r.created_at >= start]
    logs = [log for log in snapshot["audit_logs"] if log.timestamp >= start]
    total_value = total_asset_value(items)
    return {
        "date_range": date_range,
        "start": start,
        "end": now,
        "total_items": len(items),
        "total_requests": len(requests),
        "total_actions": len(logs),
        "category_stats": category_stats(items),
        "condition_stats": condition_breakdown(items),
        "borrowing_trends": borrowing_trends(requests),
        "top_borrowers": top_borrowers(users, requests),
        "most_borrowed_items": most_borrowed_items(items, requests),
        "total_asset_value": total_value,
        "average_item_value": (
            total_value / len(items) if items else Decimal(0)
        ),
        "category_values": category_values(items),
        "activity_by_type": activity_by_type(logs),
        "user_activity": most_active_users(users, logs),
    }
