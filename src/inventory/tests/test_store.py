"""Tests for the write-through InventoryStore."""

from decimal import Decimal
from unittest.mock import patch

import pytest

from django.db import DatabaseError

from inventory.exceptions import NotFoundError, StateError, ValidationError
from inventory.factories import (
    BorrowRequestFactory,
    InventoryItemFactory,
    SubDepartmentFactory,
    UserFactory,
)
from inventory.models import (
    AuditLog,
    BorrowRequest,
    Department,
    InventoryItem,
    SubDepartment,
)
from inventory.services.store import InventoryStore


@pytest.mark.django_db
class TestReads:
    def test_get_items_returns_copies(self, admin_store, item):
        items = admin_store.get_items()
        items[0].name = "Mutated"
        items.clear()
        assert admin_store.get_item(item.pk).name == "Dell XPS 13"
        assert len(admin_store.get_items()) == 1

    def test_get_item_returns_copy(self, admin_store, item):
        fetched = admin_store.get_item(item.pk)
        fetched.status = "retired"
        assert admin_store.get_item(item.pk).status == "available"

    def test_unknown_id_raises_not_found(self, admin_store):
        with pytest.raises(NotFoundError, match="Inventory item 999"):
            admin_store.get_item(999)

    def test_non_numeric_id_raises_not_found(self, admin_store):
        with pytest.raises(NotFoundError):
            admin_store.get_request("abc")

    def test_collections_are_cached(self, admin_store, item):
        admin_store.get_items()
        InventoryItem.objects.filter(pk=item.pk).update(name="Changed")
        assert admin_store.get_item(item.pk).name == "Dell XPS 13"
        admin_store.reload()
        assert admin_store.get_item(item.pk).name == "Changed"

    def test_user_lookups(self, admin_store, staff_user, sub_department):
        staff_user.sub_department = sub_department
        staff_user.save()
        admin_store.reload()
        found = admin_store.get_user_by_email("STAFF@example.com ")
        assert found.pk == staff_user.pk
        assert admin_store.get_user_by_email("nobody@example.com") is None
        by_dept = admin_store.get_users_by_department(
            staff_user.department_id
        )
        assert staff_user.pk in [u.pk for u in by_dept]
        by_sub = admin_store.get_users_by_sub_department(sub_department.pk)
        assert [u.pk for u in by_sub] == [staff_user.pk]

    def test_sub_departments_by_department(
        self, admin_store, department, other_department
    ):
        mine = SubDepartmentFactory(department=department)
        SubDepartmentFactory(department=other_department)
        subs = admin_store.get_sub_departments(department.pk)
        assert [sd.pk for sd in subs] == [mine.pk]
        assert len(admin_store.get_sub_departments()) == 2


@pytest.mark.django_db
class TestMutations:
    def test_add_item_writes_row_cache_and_audit(self, admin_store):
        admin_store.get_items()
        item = admin_store.add_item(
            name="Projector",
            description="Meeting room projector",
            category="AV",
            location="Room 2",
            purchase_price=Decimal("499.99"),
        )
        assert InventoryItem.objects.filter(pk=item.pk).exists()
        assert admin_store.get_item(item.pk).name == "Projector"

        log = AuditLog.objects.get(entity_type="item", entity_id=str(item.pk))
        assert log.action == "created"
        assert log.user == admin_store.user
        assert log.details["item"]["name"] == "Projector"
        assert log.details["item"]["purchase_price"] == "499.99"

    def test_add_item_validation_error_touches_nothing(self, admin_store):
        with pytest.raises(ValidationError) as exc_info:
            admin_store.add_item(name="", description="x", category="AV")
        assert "name" in exc_info.value.message_dict
        assert "location" in exc_info.value.message_dict
        assert InventoryItem.objects.count() == 0
        assert AuditLog.objects.count() == 0
        assert admin_store.get_items() == []

    def test_update_item_records_changes(self, admin_store, item):
        updated = admin_store.update_item(item.pk, location="Shelf B")
        assert updated.location == "Shelf B"
        item.refresh_from_db()
        assert item.location == "Shelf B"
        log = AuditLog.objects.get(action="updated")
        assert log.details == {"updates": {"location": "Shelf B"}}

    def test_update_rejects_invalid_choice(self, admin_store, item):
        with pytest.raises(ValidationError):
            admin_store.update_item(item.pk, condition="broken")
        item.refresh_from_db()
        assert item.condition == "good"
        assert AuditLog.objects.count() == 0

    def test_database_failure_propagates_and_keeps_cache(
        self, admin_store, item
    ):
        admin_store.get_items()
        with patch.object(
            InventoryItem, "save", side_effect=DatabaseError("disk full")
        ):
            with pytest.raises(DatabaseError, match="disk full"):
                admin_store.update_item(item.pk, name="Renamed")
        assert admin_store.get_item(item.pk).name == "Dell XPS 13"
        item.refresh_from_db()
        assert item.name == "Dell XPS 13"
        assert AuditLog.objects.count() == 0

    def test_database_failure_is_logged(self, admin_store, item):
        with patch("inventory.services.store.logger") as mock_logger:
            with patch.object(
                InventoryItem, "save", side_effect=DatabaseError("disk full")
            ):
                with pytest.raises(DatabaseError):
                    admin_store.update_item(item.pk, name="Renamed")
        mock_logger.exception.assert_called_once_with(
            "Database write failed: %s", f"update item {item.pk}"
        )

    def test_atomic_discards_cache_changes_on_error(self, admin_store, item):
        admin_store.get_items()
        with pytest.raises(RuntimeError):
            with admin_store.atomic():
                admin_store.update_item(item.pk, name="Renamed")
                raise RuntimeError("boom")
        assert admin_store.get_item(item.pk).name == "Dell XPS 13"
        item.refresh_from_db()
        assert item.name == "Dell XPS 13"
        assert AuditLog.objects.count() == 0

    def test_atomic_applies_cache_changes_on_commit(self, admin_store, item):
        admin_store.get_items()
        with admin_store.atomic():
            admin_store.update_item(item.pk, name="Renamed")
            admin_store.update_item(item.pk, location="Shelf C")
        cached = admin_store.get_item(item.pk)
        assert (cached.name, cached.location) == ("Renamed", "Shelf C")
        item.refresh_from_db()
        assert (item.name, item.location) == ("Renamed", "Shelf C")

    def test_atomic_reads_its_own_writes(self, admin_store, item):
        with admin_store.atomic():
            admin_store.update_item(item.pk, name="Renamed")
            assert admin_store.get_item(item.pk).name == "Renamed"
            added = admin_store.add_item(
                name="Tripod", description="x", category="AV", location="A1"
            )
            assert added.pk in [i.pk for i in admin_store.get_items()]
            admin_store.delete_item(added.pk)
            with pytest.raises(NotFoundError):
                admin_store.get_item(added.pk)
        assert [i.pk for i in admin_store.get_items()] == [item.pk]

    def test_failed_inner_block_keeps_outer_writes(self, admin_store, item):
        admin_store.get_items()
        with admin_store.atomic():
            admin_store.update_item(item.pk, name="Renamed")
            with pytest.raises(RuntimeError):
                with admin_store.atomic():
                    admin_store.update_item(item.pk, location="Shelf C")
                    raise RuntimeError("boom")
            assert admin_store.get_item(item.pk).location == "Shelf A"
        cached = admin_store.get_item(item.pk)
        assert (cached.name, cached.location) == ("Renamed", "Shelf A")
        item.refresh_from_db()
        assert (item.name, item.location) == ("Renamed", "Shelf A")

    def test_audit_log_cache_follows_writes(self, admin_store, item):
        assert admin_store.get_audit_logs() == []
        admin_store.update_item(item.pk, name="Renamed")
        logs = admin_store.get_audit_logs()
        assert [log.action for log in logs] == ["updated"]


@pytest.mark.django_db
class TestItemStatus:
    def test_cannot_release_item_on_loan(self, admin_store):
        item = InventoryItemFactory(status="borrowed")
        BorrowRequestFactory(item=item, status="active")
        with pytest.raises(StateError, match="on loan"):
            admin_store.update_item(item.pk, status="available")
        item.refresh_from_db()
        assert item.status == "borrowed"
        assert AuditLog.objects.count() == 0

    def test_cannot_mark_borrowed_without_request(self, admin_store, item):
        with pytest.raises(StateError, match="no active request"):
            admin_store.update_item(item.pk, status="borrowed")
        item.refresh_from_db()
        assert item.status == "available"

    def test_other_fields_editable_while_on_loan(self, admin_store):
        item = InventoryItemFactory(status="borrowed")
        BorrowRequestFactory(item=item, status="active")
        updated = admin_store.update_item(item.pk, location="Desk 4")
        assert updated.location == "Desk 4"

    def test_status_change_when_free(self, admin_store, item):
        updated = admin_store.update_item(item.pk, status="maintenance")
        assert updated.status == "maintenance"


@pytest.mark.django_db
class TestItemDeletion:
    def test_delete_item_cascades_request_history(self, admin_store, item):
        BorrowRequestFactory(item=item, status="returned")
        admin_store.get_requests()
        admin_store.delete_item(item.pk)
        assert not InventoryItem.objects.filter(pk=item.pk).exists()
        assert BorrowRequest.objects.count() == 0
        assert admin_store.get_requests() == []
        with pytest.raises(NotFoundError):
            admin_store.get_item(item.pk)
        assert AuditLog.objects.filter(action="deleted").count() == 1

    def test_delete_item_on_loan_raises(self, admin_store):
        item = InventoryItemFactory(status="borrowed")
        BorrowRequestFactory(item=item, status="active")
        with pytest.raises(StateError, match="on loan"):
            admin_store.delete_item(item.pk)
        assert InventoryItem.objects.filter(pk=item.pk).exists()

    def test_delete_item_schedules_photo_removal(
        self, admin_store, django_capture_on_commit_callbacks
    ):
        item = InventoryItemFactory(
            photo_url="/media/inventory-photos/a.jpg",
            photo_file_id="inventory-photos/a.jpg",
        )
        with patch("inventory.tasks.delete_photo.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                admin_store.delete_item(item.pk)
        mock_delay.assert_called_once_with("inventory-photos/a.jpg")

    def test_delete_active_request_raises(self, admin_store):
        item = InventoryItemFactory(status="borrowed")
        request = BorrowRequestFactory(item=item, status="active")
        with pytest.raises(StateError):
            admin_store.delete_request(request.pk)


@pytest.mark.django_db
class TestUsers:
    def test_add_user_hashes_password(self, admin_store, department):
        user = admin_store.add_user(
            password="secret123",
            email="new@example.com",
            name="New Person",
            role="viewer",
            department=department,
        )
        assert user.check_password("secret123")
        log = AuditLog.objects.get(entity_type="user")
        assert "password" not in log.details["user"]
        assert log.details["user"]["department"] == department.pk

    def test_add_user_duplicate_email(self, admin_store, staff_user):
        with pytest.raises(ValidationError, match="Email already exists"):
            admin_store.add_user(
                password="secret123",
                email="Staff@Example.com",
                name="Copy",
            )

    def test_add_user_short_password(self, admin_store):
        with pytest.raises(ValidationError):
            admin_store.add_user(
                password="abc", email="short@example.com", name="Short"
            )

    def test_update_user_refuses_password(self, admin_store, staff_user):
        with pytest.raises(ValidationError, match="set_user_password"):
            admin_store.update_user(staff_user.pk, password="x")

    def test_update_user_email_taken(self, admin_store, staff_user):
        with pytest.raises(ValidationError, match="Email already exists"):
            admin_store.update_user(staff_user.pk, email="admin@example.com")

    def test_set_user_password(self, admin_store, staff_user):
        admin_store.set_user_password(staff_user.pk, "brandnew1")
        staff_user.refresh_from_db()
        assert staff_user.check_password("brandnew1")
        log = AuditLog.objects.get(entity_type="user")
        assert log.action == "password_changed"
        assert log.details == {}

    def test_delete_user_with_loan_raises(self, admin_store, staff_user):
        item = InventoryItemFactory(status="borrowed")
        BorrowRequestFactory(item=item, borrower=staff_user, status="active")
        with pytest.raises(StateError):
            admin_store.delete_user(staff_user.pk)

    def test_delete_user_clears_approver(self, admin_store, staff_user):
        manager = UserFactory(role="admin")
        request = BorrowRequestFactory(status="rejected", approved_by=manager)
        admin_store.get_requests()
        admin_store.delete_user(manager.pk)
        request.refresh_from_db()
        assert request.approved_by_id is None
        assert admin_store.get_request(request.pk).approved_by_id is None


@pytest.mark.django_db
class TestDepartments:
    def test_delete_department_leaves_users_dangling(
        self, admin_store, department, sub_department, staff_user
    ):
        department_pk = department.pk
        admin_store.get_sub_departments()
        admin_store.delete_department(department_pk)

        assert not Department.objects.filter(pk=department_pk).exists()
        assert not SubDepartment.objects.filter(
            department_id=department_pk
        ).exists()
        assert admin_store.get_sub_departments() == []

        staff_user.refresh_from_db()
        assert staff_user.department_id == department_pk
        assert admin_store.get_user(staff_user.pk).department_id == (
            department_pk
        )

    def test_duplicate_department_name(self, admin_store, department):
        with pytest.raises(ValidationError):
            admin_store.add_department(name="Engineering")

    def test_duplicate_sub_department_name_in_department(
        self, admin_store, sub_department
    ):
        with pytest.raises(ValidationError):
            admin_store.add_sub_department(
                department_id=sub_department.department_id,
                name="Platform",
            )

    def test_same_sub_department_name_elsewhere(
        self, admin_store, sub_department, other_department
    ):
        created = admin_store.add_sub_department(
            department_id=other_department.pk, name="Platform"
        )
        assert created.department_id == other_department.pk

    def test_snapshot_contains_every_collection(self, admin_store, item):
        snapshot = admin_store.snapshot()
        assert set(snapshot) == {"items", "requests", "users", "audit_logs"}
        assert [i.pk for i in snapshot["items"]] == [item.pk]


@pytest.mark.django_db
def test_store_is_not_shared():
    first = InventoryStore()
    second = InventoryStore()
    InventoryItemFactory()
    first.get_items()
    assert first._cache is not second._cache
    assert "items" not in second._cache
