"""Plain-dict renderings of inventory records for JSON responses."""

from django.utils import timezone


def item_to_dict(item):
    return {
        "id": item.pk,
        "name": item.name,
        "description": item.description,
        "category": item.category,
        "serial_number": item.serial_number,
        "condition": item.condition,
        "status": item.status,
        "location": item.location,
        "purchase_date": item.purchase_date,
        "purchase_price": item.purchase_price,
        "photo_url": item.photo_url,
        "photo_file_id": item.photo_file_id,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }


def request_to_dict(request, now=None, names=None):
    """Render a borrow request.

    ``status`` is the stored value; ``display_status`` adds the overdue
    overlay. ``names`` optionally maps user/item ids to display names.
    """
    now = now or timezone.now()
    names = names or {}
    return {
        "id": request.pk,
        "item_id": request.item_id,
        "item_name": names.get(("item", request.item_id), ""),
        "borrower_id": request.borrower_id,
        "borrower_name": names.get(("user", request.borrower_id), ""),
        "department_id": request.department_id,
        "sub_department_id": request.sub_department_id,
        "requested_date": request.requested_date,
        "expected_return_date": request.expected_return_date,
        "actual_return_date": request.actual_return_date,
        "status": request.status,
        "display_status": request.display_status(now),
        "purpose": request.purpose,
        "notes": request.notes,
        "approved_by_id": request.approved_by_id,
        "approved_at": request.approved_at,
        "return_condition": request.return_condition,
        "created_at": request.created_at,
        "updated_at": request.updated_at,
    }


def user_to_dict(user):
    return {
        "id": user.pk,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "department_id": user.department_id,
        "sub_department_id": user.sub_department_id,
        "is_active": user.is_active,
        "created_at": user.date_joined,
    }


def department_to_dict(department, sub_departments=()):
    return {
        "id": department.pk,
        "name": department.name,
        "description": department.description,
        "created_at": department.created_at,
        "updated_at": department.updated_at,
        "sub_departments": [
            sub_department_to_dict(sd) for sd in sub_departments
        ],
    }


def sub_department_to_dict(sub_department):
    return {
        "id": sub_department.pk,
        "department_id": sub_department.department_id,
        "name": sub_department.name,
        "description": sub_department.description,
        "created_at": sub_department.created_at,
        "updated_at": sub_department.updated_at,
    }


def audit_log_to_dict(log):
    return {
        "id": log.pk,
        "user_id": log.user_id,
        "action": log.action,
        "entity_type": log.entity_type,
        "entity_id": log.entity_id,
        "details": log.details,
        "timestamp": log.timestamp,
    }
