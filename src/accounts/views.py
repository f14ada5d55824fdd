"""Authentication and user management views for Stockroom."""

import logging

from django_ratelimit.decorators import ratelimit

from django.conf import settings
from django.contrib.auth import (
    authenticate,
    login,
    logout,
    update_session_auth_hash,
)
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied, ValidationError
from django.http import JsonResponse
from django.utils.crypto import get_random_string

from inventory.serializers import user_to_dict
from inventory.services import permissions
from inventory.services.store import InventoryStore
from stockroom.api import error_response, json_view, read_payload

from .forms import (
    JSONPasswordChangeForm,
    LoginForm,
    PasswordResetForm,
    UserForm,
)

logger = logging.getLogger(__name__)

TEMPORARY_PASSWORD_LENGTH = 12
TEMPORARY_PASSWORD_CHARS = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789!@#$%"
)


def generate_temporary_password():
    return get_random_string(
        TEMPORARY_PASSWORD_LENGTH, TEMPORARY_PASSWORD_CHARS
    )


@ratelimit(
    key="ip", rate=settings.LOGIN_RATELIMIT, method="POST", block=False
)
@json_view(methods=("GET", "POST"))
def login_view(request):
    """Log in with email and password (POST), or report who is logged in."""
    if request.method == "GET":
        if request.user.is_authenticated:
            return JsonResponse({"user": user_to_dict(request.user)})
        return error_response("Authentication required", status=401)

    if getattr(request, "limited", False):
        return error_response(
            "Too many login attempts. Please try again shortly.", status=429
        )

    form = LoginForm(read_payload(request))
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    user = authenticate(
        request,
        email=form.cleaned_data["email"],
        password=form.cleaned_data["password"],
    )
    if user is None:
        logger.info("Failed login for %s", form.cleaned_data["email"])
        return error_response("Invalid email or password", status=401)
    login(request, user)
    return JsonResponse({"user": user_to_dict(user)})


@json_view(methods=("POST",))
def logout_view(request):
    logout(request)
    return JsonResponse({"logged_out": True})


@login_required
@json_view(methods=("POST",))
def password_change_view(request):
    """Change the current user's password."""
    form = JSONPasswordChangeForm(request.user, read_payload(request))
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    store = InventoryStore(request.user)
    user = store.set_user_password(
        request.user.pk, form.cleaned_data["new_password1"]
    )
    update_session_auth_hash(request, user)
    return JsonResponse({"changed": True})


# --- User management ---


def _visible_users(store, actor):
    """Admins see everyone; managers see staff and viewers of their
    department."""
    if permissions.is_admin(actor):
        return store.get_users()
    if not actor.department_id:
        return []
    return [
        u
        for u in store.get_users_by_department(actor.department_id)
        if permissions.can_manage_user(actor, u)
    ]


def _managed_user(store, actor, pk):
    target = store.get_user(pk)
    if not permissions.can_manage_user(actor, target):
        raise PermissionDenied
    return target


def _check_assignment(actor, role, department):
    department_id = getattr(department, "pk", department)
    if not permissions.can_assign(actor, role, department_id):
        raise PermissionDenied


@login_required
@json_view(methods=("GET", "POST"))
def user_list(request):
    """List manageable users (GET) or create one (POST).

    The response to a create includes ``temporary_password`` once when no
    password was supplied.
    """
    actor = request.user
    if not permissions.can_manage_users(actor):
        raise PermissionDenied
    store = InventoryStore(actor)

    if request.method == "GET":
        return JsonResponse(
            {"users": [user_to_dict(u) for u in _visible_users(store, actor)]}
        )

    payload = read_payload(request)
    fields = UserForm(data=payload).changes()
    fields.setdefault("role", permissions.STAFF)
    if fields.get("department") is None and not permissions.is_admin(actor):
        fields["department_id"] = actor.department_id
        fields.pop("department", None)
    _check_assignment(
        actor,
        fields["role"],
        fields.get("department", fields.get("department_id")),
    )

    password = payload.get("password") or ""
    temporary = not password
    if temporary:
        password = generate_temporary_password()
    user = store.add_user(password=password, **fields)
    logger.info("User %s created by %s", user.pk, actor.pk)

    data = {"user": user_to_dict(user)}
    if temporary:
        data["temporary_password"] = password
    return JsonResponse(data, status=201)


@login_required
@json_view(methods=("GET", "POST"))
def user_detail(request, pk):
    actor = request.user
    if not permissions.can_manage_users(actor):
        raise PermissionDenied
    store = InventoryStore(actor)
    target = _managed_user(store, actor, pk)

    if request.method == "POST":
        payload = read_payload(request)
        form = UserForm(data=payload, instance=target)
        for name in list(form.fields):
            if name not in payload:
                del form.fields[name]
        changes = form.changes()
        if "role" in changes or "department" in changes:
            _check_assignment(
                actor,
                changes.get("role", target.role),
                changes.get("department", target.department_id),
            )
        target = store.update_user(target.pk, **changes)

    return JsonResponse({"user": user_to_dict(target)})


@login_required
@json_view(methods=("POST",))
def user_delete(request, pk):
    actor = request.user
    if not permissions.can_manage_users(actor):
        raise PermissionDenied
    store = InventoryStore(actor)
    target = _managed_user(store, actor, pk)
    if target.pk == actor.pk:
        return error_response("You cannot delete your own account", 400)
    store.delete_user(target.pk)
    logger.info("User %s deleted by %s", target.pk, actor.pk)
    return JsonResponse({"deleted": True, "id": target.pk})


@login_required
@json_view(methods=("POST",))
def user_password(request, pk):
    """Reset another user's password, generating one if none is given."""
    actor = request.user
    if not permissions.can_manage_users(actor):
        raise PermissionDenied
    store = InventoryStore(actor)
    target = _managed_user(store, actor, pk)
    form = PasswordResetForm(read_payload(request))
    if not form.is_valid():
        raise ValidationError(form.errors.as_data())
    password = form.cleaned_data["password"]
    temporary = not password
    if temporary:
        password = generate_temporary_password()
    store.set_user_password(target.pk, password)
    logger.info("Password for user %s reset by %s", target.pk, actor.pk)

    data = {"changed": True}
    if temporary:
        data["temporary_password"] = password
    return JsonResponse(data)
