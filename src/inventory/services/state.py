"""Borrow request state machine and the overdue overlay."""

from django.utils import timezone

from ..exceptions import StateError

# Valid state transitions: from_status -> [to_statuses]
VALID_TRANSITIONS = {
    "pending": ["active", "rejected"],
    "active": ["returned"],
    "approved": [],
    "rejected": [],
    "returned": [],
}

OVERDUE = "overdue"


def is_overdue(status: str, expected_return_date, now=None) -> bool:
    """Return whether a request displays as overdue.

    A request is overdue when it is ``active`` and ``now`` is past its
    expected return date. This is the only place the rule lives.
    """
    if status != "active" or expected_return_date is None:
        return False
    if now is None:
        now = timezone.now()
    return now > expected_return_date


def display_status(status: str, expected_return_date, now=None) -> str:
    """Return the stored status, or ``overdue`` for late active requests."""
    if is_overdue(status, expected_return_date, now):
        return OVERDUE
    return status


def can_transition(current: str, new_status: str) -> bool:
    return new_status in VALID_TRANSITIONS.get(current, [])


def validate_transition(request, new_status: str) -> None:
    """Raise StateError if ``request`` cannot move to ``new_status``."""
    if not can_transition(request.status, new_status):
        allowed = VALID_TRANSITIONS.get(request.status, [])
        raise StateError(
            f"Cannot move request {request.pk} from "
            f"'{request.status}' to '{new_status}'. Allowed transitions: "
            f"{', '.join(allowed) or 'none'}."
        )
