"""Session working set of inventory data, written through to the database.

``InventoryStore`` is built per request (or per session) for an acting user.
It lazily loads each collection from the database and keeps it in memory.
Every mutation follows the same order:

1. validate the new state with ``full_clean()``;
2. write the row and its audit log entry in one database transaction;
3. apply the change to the in-memory cache.

A failed write raises ``DatabaseError`` unchanged and leaves the cache as it
was. Reads always hand out deep copies.
"""

import copy
import json
import logging
from contextlib import contextmanager

from django.contrib.auth import get_user_model, password_validation
from django.core.serializers.json import DjangoJSONEncoder
from django.db import DatabaseError
from django.db import models as db_models
from django.db import transaction as db_transaction
from django.forms.models import model_to_dict

from ..exceptions import NotFoundError, StateError, ValidationError
from ..models import (
    AuditLog,
    BorrowRequest,
    Department,
    InventoryItem,
    SubDepartment,
)

User = get_user_model()

logger = logging.getLogger(__name__)

# Fields never copied into audit log details
AUDIT_EXCLUDED_FIELDS = [
    "password",
    "last_login",
    "groups",
    "user_permissions",
]


def _json_safe(value):
    """Round-trip through JSON so cached details match what is stored."""
    return json.loads(json.dumps(value, cls=DjangoJSONEncoder))


def _changes_for_audit(changes):
    out = {}
    for field, value in changes.items():
        if isinstance(value, db_models.Model):
            value = value.pk
        out[field] = value
    return out


class InventoryStore:
    """Cached users, items, requests and departments for one acting user."""

    COLLECTIONS = {
        "items": (InventoryItem, "item", "Inventory item"),
        "requests": (BorrowRequest, "request", "Borrow request"),
        "users": (User, "user", "User"),
        "departments": (Department, "department", "Department"),
        "sub_departments": (
            SubDepartment,
            "sub_department",
            "Sub-department",
        ),
    }

    def __init__(self, user=None):
        self.user = user
        self._cache = {}
        self._audit_logs = None
        self._staged = None
        self._pending = None

    def __repr__(self):
        loaded = ", ".join(sorted(self._cache)) or "nothing"
        return f"<InventoryStore for {self.user} ({loaded} loaded)>"

    # --- Loading ---

    def _collection(self, name):
        if name not in self._cache:
            model = self.COLLECTIONS[name][0]
            self._cache[name] = {
                obj.pk: obj for obj in model.objects.order_by("pk")
            }
        if not self._pending or name not in self._pending:
            return self._cache[name]
        # Writes staged inside atomic() shadow the committed cache
        merged = dict(self._cache[name])
        for pk, obj in self._pending[name].items():
            if obj is None:
                merged.pop(pk, None)
            else:
                merged[pk] = obj
        return dict(sorted(merged.items()))

    def _audit_collection(self):
        if self._audit_logs is None:
            self._audit_logs = list(
                AuditLog.objects.order_by("timestamp", "pk")
            )
        return self._audit_logs

    def reload(self):
        """Drop everything cached; the next read goes to the database."""
        self._cache = {}
        self._audit_logs = None
        if self._pending is not None:
            self._pending = {}

    def _lookup(self, name, pk):
        try:
            key = int(pk)
        except (TypeError, ValueError):
            raise NotFoundError(self.COLLECTIONS[name][2], pk)
        obj = self._collection(name).get(key)
        if obj is None:
            raise NotFoundError(self.COLLECTIONS[name][2], pk)
        return obj

    def _copies(self, name, predicate=None):
        return [
            copy.deepcopy(obj)
            for obj in self._collection(name).values()
            if predicate is None or predicate(obj)
        ]

    # --- Transactions ---

    @contextmanager
    def atomic(self):
        """Group several mutations into one database transaction.

        Reads inside the block see the block's own writes. Those writes
        reach the shared cache only after the outermost block exits without
        an exception; a failed inner block discards just its own writes.
        """
        outermost = self._staged is None
        if outermost:
            self._staged = []
            self._pending = {}
        mark = len(self._staged)
        saved = {name: dict(rows) for name, rows in self._pending.items()}
        try:
            with db_transaction.atomic():
                yield self
        except BaseException:
            del self._staged[mark:]
            if outermost:
                self._staged = None
                self._pending = None
            else:
                self._pending = saved
            raise
        if outermost:
            pending, self._pending = self._pending, None
            staged, self._staged = self._staged, None
            for name, rows in pending.items():
                cache = self._cache.get(name)
                if cache is None:
                    continue
                for pk, obj in rows.items():
                    if obj is None:
                        cache.pop(pk, None)
                    else:
                        cache[pk] = obj
            for apply in staged:
                apply()

    def _stage(self, apply):
        if self._staged is None:
            apply()
        else:
            self._staged.append(apply)

    @contextmanager
    def _remote_write(self, description):
        try:
            yield
        except DatabaseError:
            logger.exception("Database write failed: %s", description)
            raise

    def _actor(self):
        if self.user is not None and getattr(
            self.user, "is_authenticated", False
        ):
            return self.user
        return None

    def _audit(self, entity_type, entity_id, action, details):
        return AuditLog.objects.create(
            user=self._actor(),
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            details=_json_safe(details),
        )

    def _remember_log(self, log):
        if self._audit_logs is not None:
            self._audit_logs.append(log)

    def _put(self, name, instance):
        if self._pending is not None:
            self._pending.setdefault(name, {})[instance.pk] = instance
            return
        cache = self._cache.get(name)
        if cache is not None:
            cache[instance.pk] = instance

    def _drop(self, name, predicate):
        if self._pending is not None:
            rows = dict(self._cache.get(name) or {})
            rows.update(self._pending.get(name, {}))
            doomed = [
                pk
                for pk, obj in rows.items()
                if obj is not None and predicate(obj)
            ]
            for pk in doomed:
                self._pending.setdefault(name, {})[pk] = None
            return
        cache = self._cache.get(name)
        if cache is not None:
            for pk in [pk for pk, obj in cache.items() if predicate(obj)]:
                del cache[pk]

    # --- Generic mutations ---

    def _create(self, name, instance, action="created"):
        entity_type = self.COLLECTIONS[name][1]
        instance.full_clean()
        with self._remote_write(f"create {entity_type}"):
            with db_transaction.atomic():
                instance.save()
                details = model_to_dict(
                    instance, exclude=AUDIT_EXCLUDED_FIELDS
                )
                log = self._audit(
                    entity_type, instance.pk, action, {entity_type: details}
                )
        self._put(name, instance)
        self._stage(lambda: self._remember_log(log))
        return copy.deepcopy(instance)

    def _update(self, name, pk, changes, action="updated"):
        entity_type = self.COLLECTIONS[name][1]
        instance = copy.deepcopy(self._lookup(name, pk))
        for field, value in changes.items():
            setattr(instance, field, value)
        unchanged = [
            f.name
            for f in instance._meta.fields
            if f.name not in changes and f.attname not in changes
        ]
        instance.full_clean(exclude=unchanged)
        with self._remote_write(f"update {entity_type} {pk}"):
            with db_transaction.atomic():
                instance.save()
                log = self._audit(
                    entity_type,
                    instance.pk,
                    action,
                    {"updates": _changes_for_audit(changes)},
                )
        self._put(name, instance)
        self._stage(lambda: self._remember_log(log))
        return copy.deepcopy(instance)

    def _delete(self, name, pk, cascades=()):
        """Delete a row; ``cascades`` lists (collection, predicate) pairs
        the database removes with it."""
        model, entity_type, _ = self.COLLECTIONS[name]
        instance = self._lookup(name, pk)
        with self._remote_write(f"delete {entity_type} {pk}"):
            with db_transaction.atomic():
                model.objects.filter(pk=instance.pk).delete()
                log = self._audit(entity_type, instance.pk, "deleted", {})
        self._drop(name, lambda obj: obj.pk == instance.pk)
        for other, predicate in cascades:
            self._drop(other, predicate)
        self._stage(lambda: self._remember_log(log))
        return copy.deepcopy(instance)

    def lock(self, name, pk):
        """Re-read one row under a row lock and refresh its cache entry.

        Must be called inside ``atomic()``.
        """
        model = self.COLLECTIONS[name][0]
        try:
            row = model.objects.select_for_update().get(pk=pk)
        except (model.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(self.COLLECTIONS[name][2], pk)
        self._put(name, row)
        return copy.deepcopy(row)

    # --- Items ---

    def get_items(self):
        return self._copies("items")

    def get_item(self, pk):
        return copy.deepcopy(self._lookup("items", pk))

    def add_item(self, **fields):
        return self._create("items", InventoryItem(**fields))

    def item_on_loan(self, pk):
        """Whether an active request holds the item, per the database."""
        return BorrowRequest.objects.filter(
            item_id=pk, status="active"
        ).exists()

    def update_item(self, pk, **changes):
        status = changes.get("status")
        if status is not None:
            item = self._lookup("items", pk)
            on_loan = self.item_on_loan(item.pk)
            if status == "borrowed" and not on_loan:
                raise StateError(
                    f"Item {item.pk} has no active request and cannot be "
                    "marked as borrowed."
                )
            if status != "borrowed" and on_loan:
                raise StateError(
                    f"Item {item.pk} is on loan. Process the return before "
                    "changing its status."
                )
        return self._update("items", pk, changes)

    def delete_item(self, pk):
        item = self._lookup("items", pk)
        if self.item_on_loan(item.pk):
            raise StateError(
                f"Item {item.pk} is on loan and cannot be deleted. "
                "Process the return first."
            )
        deleted = self._delete(
            "items",
            pk,
            cascades=[("requests", lambda r: r.item_id == item.pk)],
        )
        if deleted.photo_file_id:
            from ..tasks import delete_photo

            db_transaction.on_commit(
                lambda: delete_photo.delay(deleted.photo_file_id)
            )
        return deleted

    # --- Borrow requests ---

    def get_requests(self):
        return self._copies("requests")

    def get_request(self, pk):
        return copy.deepcopy(self._lookup("requests", pk))

    def get_requests_for_borrower(self, borrower_id):
        return self._copies(
            "requests", lambda r: r.borrower_id == borrower_id
        )

    def add_request(self, **fields):
        return self._create("requests", BorrowRequest(**fields))

    def update_request(self, pk, **changes):
        return self._update("requests", pk, changes)

    def delete_request(self, pk):
        request = self._lookup("requests", pk)
        if request.status == "active":
            raise StateError(
                f"Request {request.pk} is active and cannot be deleted."
            )
        return self._delete("requests", pk)

    # --- Users ---

    def get_users(self):
        return self._copies("users")

    def get_user(self, pk):
        return copy.deepcopy(self._lookup("users", pk))

    def get_user_by_email(self, email):
        email = (email or "").strip().lower()
        for user in self._collection("users").values():
            if user.email.lower() == email:
                return copy.deepcopy(user)
        return None

    def get_users_by_department(self, department_id):
        return self._copies(
            "users", lambda u: u.department_id == department_id
        )

    def get_users_by_sub_department(self, sub_department_id):
        return self._copies(
            "users", lambda u: u.sub_department_id == sub_department_id
        )

    def add_user(self, password=None, **fields):
        if self.get_user_by_email(fields.get("email")) is not None:
            raise ValidationError({"email": "Email already exists"})
        user = User(**fields)
        if password:
            password_validation.validate_password(password, user)
            user.set_password(password)
        else:
            user.set_unusable_password()
        return self._create("users", user)

    def update_user(self, pk, **changes):
        if "password" in changes:
            raise ValidationError(
                "Use set_user_password() to change a password."
            )
        current = self._lookup("users", pk)
        email = changes.get("email")
        if email is not None:
            existing = self.get_user_by_email(email)
            if existing is not None and existing.pk != current.pk:
                raise ValidationError({"email": "Email already exists"})
        return self._update("users", pk, changes)

    def set_user_password(self, pk, password):
        user = copy.deepcopy(self._lookup("users", pk))
        password_validation.validate_password(password, user)
        user.set_password(password)
        with self._remote_write(f"set password for user {pk}"):
            with db_transaction.atomic():
                user.save(update_fields=["password"])
                log = self._audit("user", user.pk, "password_changed", {})
        self._put("users", user)
        self._stage(lambda: self._remember_log(log))
        return copy.deepcopy(user)

    def delete_user(self, pk):
        user = self._lookup("users", pk)
        if BorrowRequest.objects.filter(
            borrower=user, status="active"
        ).exists():
            raise StateError(
                f"User {user.pk} has items on loan and cannot be deleted."
            )
        deleted = self._delete(
            "users",
            pk,
            cascades=[("requests", lambda r: r.borrower_id == user.pk)],
        )

        if "requests" in self._cache:
            for request in self._copies(
                "requests", lambda r: r.approved_by_id == user.pk
            ):
                request.approved_by = None
                self._put("requests", request)

        def clear_references():
            for log in self._audit_logs or []:
                if log.user_id == user.pk:
                    log.user = None

        self._stage(clear_references)
        return deleted

    # --- Departments ---

    def get_departments(self):
        return self._copies("departments")

    def get_department(self, pk):
        return copy.deepcopy(self._lookup("departments", pk))

    def add_department(self, **fields):
        return self._create("departments", Department(**fields))

    def update_department(self, pk, **changes):
        return self._update("departments", pk, changes)

    def delete_department(self, pk):
        """Delete a department and its sub-departments.

        Users and borrow requests keep the deleted department id.
        """
        department = self._lookup("departments", pk)
        return self._delete(
            "departments",
            pk,
            cascades=[
                (
                    "sub_departments",
                    lambda sd: sd.department_id == department.pk,
                )
            ],
        )

    def get_sub_departments(self, department_id=None):
        if department_id is None:
            return self._copies("sub_departments")
        return self._copies(
            "sub_departments", lambda sd: sd.department_id == department_id
        )

    def get_sub_department(self, pk):
        return copy.deepcopy(self._lookup("sub_departments", pk))

    def add_sub_department(self, **fields):
        return self._create("sub_departments", SubDepartment(**fields))

    def update_sub_department(self, pk, **changes):
        return self._update("sub_departments", pk, changes)

    def delete_sub_department(self, pk):
        return self._delete("sub_departments", pk)

    # --- Audit log and snapshots ---

    def get_audit_logs(self):
        return [copy.deepcopy(log) for log in self._audit_collection()]

    def snapshot(self):
        """Copies of every collection, for the report functions."""
        return {
            "items": self.get_items(),
            "requests": self.get_requests(),
            "users": self.get_users(),
            "audit_logs": self.get_audit_logs(),
        }
