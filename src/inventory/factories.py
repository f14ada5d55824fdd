"""Factory Boy factories for Stockroom test data generation."""

from datetime import timedelta
from decimal import Decimal

import factory
from factory.django import DjangoModelFactory

from django.utils import timezone


class DepartmentFactory(DjangoModelFactory):
    """Factory for Department model."""

    class Meta:
        model = "inventory.Department"

    name = factory.Sequence(lambda n: f"Department {n}")
    description = factory.Faker("sentence")


class SubDepartmentFactory(DjangoModelFactory):
    """Factory for SubDepartment model."""

    class Meta:
        model = "inventory.SubDepartment"

    department = factory.SubFactory(DepartmentFactory)
    name = factory.Sequence(lambda n: f"Team {n}")
    description = ""


class UserFactory(DjangoModelFactory):
    """Factory for CustomUser model."""

    class Meta:
        model = "accounts.CustomUser"
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    name = factory.Faker("name")
    role = "staff"
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        pwd = extracted or "testpass123!"
        self.set_password(pwd)
        if create:
            self.save(update_fields=["password"])


class InventoryItemFactory(DjangoModelFactory):
    """Factory for InventoryItem model."""

    class Meta:
        model = "inventory.InventoryItem"

    name = factory.Sequence(lambda n: f"Item {n}")
    description = factory.Faker("sentence")
    category = "Laptops"
    serial_number = factory.Sequence(lambda n: f"SN-{n:05d}")
    condition = "good"
    status = "available"
    location = "Store Room"
    purchase_price = Decimal("100.00")


class BorrowRequestFactory(DjangoModelFactory):
    """Factory for BorrowRequest model.

    Creates a pending request due back a week from now. Pass
    ``status="active"`` together with an item whose status is
    ``borrowed`` to build a loan directly.
    """

    class Meta:
        model = "inventory.BorrowRequest"

    item = factory.SubFactory(InventoryItemFactory)
    borrower = factory.SubFactory(UserFactory)
    department = factory.SubFactory(DepartmentFactory)
    expected_return_date = factory.LazyFunction(
        lambda: timezone.now() + timedelta(days=7)
    )
    status = "pending"
    purpose = factory.Faker("sentence")


class AuditLogFactory(DjangoModelFactory):
    """Factory for AuditLog model."""

    class Meta:
        model = "inventory.AuditLog"

    user = factory.SubFactory(UserFactory)
    action = "created"
    entity_type = "item"
    entity_id = "1"
    details = factory.LazyFunction(dict)
