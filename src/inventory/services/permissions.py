"""Role-based access control."""

from django.contrib.auth import get_user_model

User = get_user_model()

ADMIN = User.ROLE_ADMIN
MANAGER = User.ROLE_MANAGER
STAFF = User.ROLE_STAFF
VIEWER = User.ROLE_VIEWER

# Roles a manager may hand out within their own department
MANAGER_ASSIGNABLE_ROLES = (STAFF, VIEWER)


def get_user_role(user: User) -> str:
    """Determine the user's role.

    Returns one of: 'admin', 'manager', 'staff' or 'viewer'. Superusers are
    always admins; anonymous users are viewers.
    """
    if not getattr(user, "is_authenticated", False):
        return VIEWER
    if user.is_superuser:
        return ADMIN
    return user.role


def is_admin(user: User) -> bool:
    return get_user_role(user) == ADMIN


def can_manage_items(user: User) -> bool:
    """Create, edit and delete inventory items and their photos."""
    return is_admin(user)


def can_submit_request(user: User) -> bool:
    return get_user_role(user) in (ADMIN, STAFF)


def can_process_requests(user: User) -> bool:
    """Approve, reject and process returns."""
    return is_admin(user)


def can_view_all_requests(user: User) -> bool:
    """Staff only see their own requests; every other role sees all."""
    return get_user_role(user) != STAFF


def can_manage_departments(user: User) -> bool:
    return is_admin(user)


def can_view_reports(user: User) -> bool:
    return is_admin(user)


def can_manage_users(user: User) -> bool:
    """Whether the user may open user management at all."""
    return get_user_role(user) in (ADMIN, MANAGER)


def can_manage_user(user: User, target: User) -> bool:
    """Check if ``user`` can edit, reset or delete ``target``.

    Admins manage everyone. Managers manage staff and viewers of their own
    department, never themselves.
    """
    role = get_user_role(user)
    if role == ADMIN:
        return True
    if role == MANAGER:
        if target.pk == user.pk or not user.department_id:
            return False
        return (
            target.department_id == user.department_id
            and get_user_role(target) in MANAGER_ASSIGNABLE_ROLES
        )
    return False


def can_assign(user: User, role: str, department_id) -> bool:
    """Check if ``user`` may give a user ``role`` in ``department_id``."""
    actor_role = get_user_role(user)
    if actor_role == ADMIN:
        return True
    if actor_role == MANAGER:
        return (
            role in MANAGER_ASSIGNABLE_ROLES
            and user.department_id is not None
            and department_id == user.department_id
        )
    return False
