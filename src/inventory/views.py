"""JSON views for inventory, borrow requests, departments and reports."""

import logging

from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.http import HttpResponse, JsonResponse
from django.utils import timezone

from stockroom.api import error_response, json_view, read_payload

from .forms import (
    BorrowRequestForm,
    DepartmentForm,
    ItemFilterForm,
    ItemForm,
    RequestFilterForm,
    ReturnForm,
    SubDepartmentForm,
    bind,
)
from .serializers import (
    audit_log_to_dict,
    department_to_dict,
    item_to_dict,
    request_to_dict,
    sub_department_to_dict,
)
from .services import lending, permissions, photos, reports
from .services.export import export_report_xlsx
from .services.store import InventoryStore

logger = logging.getLogger(__name__)


def _names(store):
    """Display names for items and users, keyed by (kind, id)."""
    names = {("item", i.pk): i.name for i in store.get_items()}
    names.update(
        {("user", u.pk): u.get_display_name() for u in store.get_users()}
    )
    return names


# --- Dashboards ---


@login_required
@json_view()
def dashboard(request):
    """Headline counts for the landing page."""
    store = InventoryStore(request.user)
    now = timezone.now()
    items = store.get_items()
    if permissions.can_view_all_requests(request.user):
        requests = store.get_requests()
    else:
        requests = store.get_requests_for_borrower(request.user.pk)
    return JsonResponse(
        {
            "role": permissions.get_user_role(request.user),
            "stats": reports.dashboard_stats(items, requests, now),
        }
    )


@login_required
@json_view()
def admin_dashboard(request):
    if not permissions.can_view_reports(request.user):
        raise PermissionDenied
    store = InventoryStore(request.user)
    return JsonResponse(reports.admin_dashboard(store.snapshot()))


# --- Items ---


@login_required
@json_view(methods=("GET", "POST"))
def item_list(request):
    """List items (GET) or create one (POST, admin only)."""
    store = InventoryStore(request.user)
    if request.method == "POST":
        if not permissions.can_manage_items(request.user):
            raise PermissionDenied
        form = bind(ItemForm, read_payload(request))
        item = store.add_item(**form.changes())
        return JsonResponse(item_to_dict(item), status=201)

    filters = ItemFilterForm(request.GET)
    filters.is_valid()
    search = filters.cleaned_data.get("search", "").strip().lower()
    category = filters.cleaned_data.get("category", "")
    status = filters.cleaned_data.get("status", "")

    items = store.get_items()
    if search:
        items = [
            i
            for i in items
            if search in i.name.lower()
            or search in i.description.lower()
            or search in i.serial_number.lower()
        ]
    if category:
        items = [i for i in items if i.category == category]
    if status:
        items = [i for i in items if i.status == status]
    return JsonResponse(
        {
            "items": [item_to_dict(i) for i in items],
            "categories": sorted({i.category for i in store.get_items()}),
        }
    )


@login_required
@json_view(methods=("GET", "POST"))
def item_detail(request, pk):
    store = InventoryStore(request.user)
    item = store.get_item(pk)
    if request.method == "POST":
        if not permissions.can_manage_items(request.user):
            raise PermissionDenied
        form = bind(ItemForm, read_payload(request), instance=item)
        item = store.update_item(item.pk, **form.changes())
    return JsonResponse(item_to_dict(item))


@login_required
@json_view(methods=("POST",))
def item_delete(request, pk):
    if not permissions.can_manage_items(request.user):
        raise PermissionDenied
    store = InventoryStore(request.user)
    item = store.delete_item(pk)
    return JsonResponse({"deleted": True, "id": item.pk})


@login_required
@json_view(methods=("POST", "DELETE"))
def item_photo(request, pk):
    """Upload a photo (multipart ``photo``) or remove it.

    Removal is a DELETE, or a POST with ``remove`` set for HTML forms.
    """
    store = InventoryStore(request.user)
    if request.method == "DELETE" or request.POST.get("remove"):
        item = photos.clear_item_photo(store, pk)
        return JsonResponse(item_to_dict(item))
    upload = request.FILES.get("photo")
    if upload is None:
        return error_response("No file provided", status=400)
    item = photos.set_item_photo(store, pk, upload, upload.name)
    return JsonResponse(item_to_dict(item))


# --- Borrow requests ---


@login_required
@json_view(methods=("GET", "POST"))
def request_list(request):
    """List borrow requests (GET) or submit a new one (POST).

    Staff only ever see their own requests. ``status=overdue`` selects
    active requests past their expected return date.
    """
    store = InventoryStore(request.user)
    now = timezone.now()
    if request.method == "POST":
        data = BorrowRequestForm(read_payload(request)).changes()
        borrow_request = lending.submit_request(
            store,
            item_id=data["item"],
            expected_return_date=data["expected_return_date"],
            purpose=data["purpose"],
            department_id=data["department"],
            sub_department_id=data["sub_department"],
            notes=data["notes"],
            now=now,
        )
        return JsonResponse(
            request_to_dict(borrow_request, now, _names(store)), status=201
        )

    filters = RequestFilterForm(request.GET)
    filters.is_valid()
    search = filters.cleaned_data.get("search", "").strip().lower()
    status = filters.cleaned_data.get("status", "")

    if permissions.can_view_all_requests(request.user):
        requests = store.get_requests()
    else:
        requests = store.get_requests_for_borrower(request.user.pk)

    names = _names(store)
    if search:
        departments = {d.pk: d.name for d in store.get_departments()}
        sub_departments = {
            sd.pk: sd.name for sd in store.get_sub_departments()
        }

        def matches(r):
            fields = [
                names.get(("item", r.item_id), ""),
                names.get(("user", r.borrower_id), ""),
                r.purpose,
                departments.get(r.department_id, ""),
                sub_departments.get(r.sub_department_id, ""),
            ]
            return any(search in value.lower() for value in fields)

        requests = [r for r in requests if matches(r)]
    if status:
        requests = [r for r in requests if r.display_status(now) == status]
    requests.sort(key=lambda r: r.created_at, reverse=True)
    return JsonResponse(
        {"requests": [request_to_dict(r, now, names) for r in requests]}
    )


@login_required
@json_view(methods=("POST",))
def request_approve(request, pk):
    store = InventoryStore(request.user)
    borrow_request = lending.approve_request(store, pk)
    return JsonResponse(request_to_dict(borrow_request))


@login_required
@json_view(methods=("POST",))
def request_reject(request, pk):
    store = InventoryStore(request.user)
    borrow_request = lending.reject_request(store, pk)
    return JsonResponse(request_to_dict(borrow_request))


@login_required
@json_view(methods=("POST",))
def request_return(request, pk):
    store = InventoryStore(request.user)
    data = ReturnForm(read_payload(request)).changes()
    borrow_request = lending.process_return(
        store, pk, data["return_condition"]
    )
    return JsonResponse(request_to_dict(borrow_request))


# --- Departments ---


@login_required
@json_view(methods=("GET", "POST"))
def department_list(request):
    store = InventoryStore(request.user)
    if request.method == "POST":
        if not permissions.can_manage_departments(request.user):
            raise PermissionDenied
        form = bind(DepartmentForm, read_payload(request))
        department = store.add_department(**form.changes())
        return JsonResponse(department_to_dict(department), status=201)

    sub_departments = store.get_sub_departments()
    return JsonResponse(
        {
            "departments": [
                department_to_dict(
                    d,
                    [sd for sd in sub_departments if sd.department_id == d.pk],
                )
                for d in store.get_departments()
            ]
        }
    )


@login_required
@json_view(methods=("POST",))
def department_delete(request, pk):
    if not permissions.can_manage_departments(request.user):
        raise PermissionDenied
    store = InventoryStore(request.user)
    department = store.delete_department(pk)
    return JsonResponse({"deleted": True, "id": department.pk})


@login_required
@json_view(methods=("POST",))
def sub_department_create(request, pk):
    if not permissions.can_manage_departments(request.user):
        raise PermissionDenied
    store = InventoryStore(request.user)
    department = store.get_department(pk)
    form = bind(SubDepartmentForm, read_payload(request))
    sub_department = store.add_sub_department(
        department_id=department.pk, **form.changes()
    )
    return JsonResponse(sub_department_to_dict(sub_department), status=201)


@login_required
@json_view(methods=("POST",))
def sub_department_delete(request, pk):
    if not permissions.can_manage_departments(request.user):
        raise PermissionDenied
    store = InventoryStore(request.user)
    sub_department = store.delete_sub_department(pk)
    return JsonResponse({"deleted": True, "id": sub_department.pk})


# --- Reports and audit log ---


def _date_range(request):
    date_range = request.GET.get("range", reports.DEFAULT_DATE_RANGE)
    if date_range not in reports.DATE_RANGES:
        date_range = reports.DEFAULT_DATE_RANGE
    return date_range


@login_required
@json_view()
def report(request):
    if not permissions.can_view_reports(request.user):
        raise PermissionDenied
    store = InventoryStore(request.user)
    return JsonResponse(
        reports.build_report(store.snapshot(), _date_range(request))
    )


@login_required
@json_view()
def report_export(request):
    if not permissions.can_view_reports(request.user):
        raise PermissionDenied
    store = InventoryStore(request.user)
    date_range = _date_range(request)
    data = reports.build_report(store.snapshot(), date_range)
    buf = export_report_xlsx(data)
    filename = f"report_{date_range}_{timezone.localdate():%Y%m%d}.xlsx"
    response = HttpResponse(
        buf.getvalue(),
        content_type=(
            "application/vnd.openxmlformats-officedocument"
            ".spreadsheetml.sheet"
        ),
    )
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    logger.info("Report export (%s) by %s", date_range, request.user.pk)
    return response


@login_required
@json_view()
def audit_log(request):
    """Audit entries, newest first, optionally filtered by entity type."""
    if not permissions.can_view_reports(request.user):
        raise PermissionDenied
    store = InventoryStore(request.user)
    logs = list(reversed(store.get_audit_logs()))
    entity_type = request.GET.get("entity_type")
    if entity_type:
        logs = [log for log in logs if log.entity_type == entity_type]
    return JsonResponse({"logs": [audit_log_to_dict(log) for log in logs]})
