"""Borrow request lifecycle: submit, approve, reject and return.

Approve and return change a request and its item together. Both writes run
inside ``store.atomic()`` with the rows locked, so either both land (in the
database and the store cache) or neither does.
"""

import logging

from django.core.exceptions import PermissionDenied
from django.utils import timezone

from ..exceptions import StateError, ValidationError
from ..models import InventoryItem
from . import permissions
from .state import validate_transition

logger = logging.getLogger(__name__)


def _aware(value):
    if value is not None and timezone.is_naive(value):
        return timezone.make_aware(value)
    return value


def submit_request(
    store,
    *,
    item_id,
    expected_return_date,
    purpose,
    department_id,
    sub_department_id=None,
    notes="",
    now=None,
):
    """Create a pending borrow request for the store's user.

    The item's status is left alone until the request is approved.
    """
    borrower = store.user
    if not permissions.can_submit_request(borrower):
        raise PermissionDenied
    now = now or timezone.now()
    expected_return_date = _aware(expected_return_date)

    errors = {}
    if not item_id:
        errors["item"] = "Item is required."
    if expected_return_date is None:
        errors["expected_return_date"] = "Expected return date is required."
    elif expected_return_date <= now:
        errors["expected_return_date"] = (
            "Expected return date must be in the future."
        )
    if not (purpose or "").strip():
        errors["purpose"] = "Purpose is required."
    if not department_id:
        errors["department"] = "Department is required."
    if errors:
        raise ValidationError(errors)

    item = store.get_item(item_id)
    department = store.get_department(department_id)
    sub_department = None
    if sub_department_id:
        sub_department = store.get_sub_department(sub_department_id)
        if sub_department.department_id != department.pk:
            raise ValidationError(
                {
                    "sub_department": "Sub-department does not belong to "
                    "the selected department."
                }
            )

    if item.status != "available":
        raise StateError(
            f"'{item.name}' is {item.get_status_display().lower()} and "
            "cannot be requested."
        )

    request = store.add_request(
        item_id=item.pk,
        borrower_id=borrower.pk,
        department_id=department.pk,
        sub_department_id=sub_department.pk if sub_department else None,
        requested_date=now,
        expected_return_date=expected_return_date,
        status="pending",
        purpose=purpose.strip(),
        notes=notes or "",
        created_at=now,
    )
    logger.info(
        "Request %s submitted by %s for item %s",
        request.pk,
        borrower.pk,
        item.pk,
    )
    return request


def approve_request(store, request_id, now=None):
    """Activate a pending request and mark its item as borrowed."""
    approver = store.user
    if not permissions.can_process_requests(approver):
        raise PermissionDenied
    now = now or timezone.now()

    with store.atomic():
        request = store.lock("requests", request_id)
        validate_transition(request, "active")
        item = store.lock("items", request.item_id)
        if item.status != "available":
            raise StateError(
                f"'{item.name}' is {item.get_status_display().lower()} "
                "and cannot be lent out."
            )
        if store.item_on_loan(item.pk):
            raise StateError(f"'{item.name}' is already on loan.")
        request = store.update_request(
            request.pk,
            status="active",
            approved_by_id=approver.pk,
            approved_at=now,
        )
        store.update_item(item.pk, status="borrowed")

    logger.info("Request %s approved by %s", request.pk, approver.pk)
    return request


def reject_request(store, request_id, now=None):
    """Reject a pending request. The item is not touched."""
    approver = store.user
    if not permissions.can_process_requests(approver):
        raise PermissionDenied
    now = now or timezone.now()

    with store.atomic():
        request = store.lock("requests", request_id)
        validate_transition(request, "rejected")
        request = store.update_request(
            request.pk,
            status="rejected",
            approved_by_id=approver.pk,
            approved_at=now,
        )

    logger.info("Request %s rejected by %s", request.pk, approver.pk)
    return request


def process_return(store, request_id, return_condition, now=None):
    """Close an active (or overdue) request and put the item back.

    The item's condition is replaced by ``return_condition``.
    """
    processor = store.user
    if not permissions.can_process_requests(processor):
        raise PermissionDenied
    if return_condition not in dict(InventoryItem.CONDITION_CHOICES):
        raise ValidationError(
            {"return_condition": f"'{return_condition}' is not a condition."}
        )
    now = now or timezone.now()

    with store.atomic():
        request = store.lock("requests", request_id)
        validate_transition(request, "returned")
        item = store.lock("items", request.item_id)
        request = store.update_request(
            request.pk,
            status="returned",
            actual_return_date=now,
            return_condition=return_condition,
        )
        store.update_item(
            item.pk, status="available", condition=return_condition
        )

    logger.info(
        "Request %s returned in %s condition, processed by %s",
        request.pk,
        return_condition,
        processor.pk,
    )
    return request
