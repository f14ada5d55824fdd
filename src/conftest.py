"""Shared pytest fixtures and factories for Stockroom tests."""

import pytest

from django.conf import settings
from django.test import Client

# Use local filesystem storage for tests (avoids S3 credential errors)
settings.STORAGES["default"] = {
    "BACKEND": "django.core.files.storage.FileSystemStorage",
}
settings.STORAGES["staticfiles"] = {
    "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
}

# Run Celery tasks synchronously in tests
settings.CELERY_TASK_ALWAYS_EAGER = True
settings.CELERY_TASK_EAGER_PROPAGATES = True

# Use in-memory cache for tests (avoids Redis connection errors)
settings.CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}


@pytest.fixture(autouse=True)
def _clear_cache():
    """Clear the in-memory cache before each test.

    Prevents rate-limit counters (django_ratelimit) from bleeding
    across tests.
    """
    from django.core.cache import cache

    cache.clear()


@pytest.fixture(autouse=True)
def _media_root(settings, tmp_path):
    """Keep uploaded photos out of the source tree."""
    settings.MEDIA_ROOT = tmp_path / "media"


from inventory.factories import (  # noqa: E402
    DepartmentFactory,
    InventoryItemFactory,
    SubDepartmentFactory,
    UserFactory,
)
from inventory.services.store import InventoryStore  # noqa: E402

# --- Department fixtures ---


@pytest.fixture
def department(db):
    return DepartmentFactory(
        name="Engineering",
        description="Engineering department",
    )


@pytest.fixture
def sub_department(department):
    return SubDepartmentFactory(department=department, name="Platform")


@pytest.fixture
def other_department(db):
    return DepartmentFactory(name="Marketing")


# --- User fixtures ---


@pytest.fixture
def password():
    return "testpass123!"


@pytest.fixture
def admin_user(db, password):
    return UserFactory(
        email="admin@example.com",
        name="Alice Admin",
        role="admin",
        password=password,
    )


@pytest.fixture
def manager_user(department, password):
    return UserFactory(
        email="manager@example.com",
        name="Morgan Manager",
        role="manager",
        department=department,
        password=password,
    )


@pytest.fixture
def staff_user(department, password):
    return UserFactory(
        email="staff@example.com",
        name="Sam Staff",
        role="staff",
        department=department,
        password=password,
    )


@pytest.fixture
def viewer_user(department, password):
    return UserFactory(
        email="viewer@example.com",
        name="Vic Viewer",
        role="viewer",
        department=department,
        password=password,
    )


@pytest.fixture
def superuser(db, password):
    """Superuser with Django admin site access."""
    return UserFactory(
        email="root@example.com",
        name="Root",
        role="admin",
        is_staff=True,
        is_superuser=True,
        password=password,
    )


def _client_for(user, password):
    client = Client()
    assert client.login(email=user.email, password=password)
    return client


@pytest.fixture
def admin_client(admin_user, password):
    return _client_for(admin_user, password)


@pytest.fixture
def superuser_client(superuser, password):
    return _client_for(superuser, password)


@pytest.fixture
def manager_client(manager_user, password):
    return _client_for(manager_user, password)


@pytest.fixture
def staff_client(staff_user, password):
    return _client_for(staff_user, password)


@pytest.fixture
def viewer_client(viewer_user, password):
    return _client_for(viewer_user, password)


# --- Inventory fixtures ---


@pytest.fixture
def item(db):
    return InventoryItemFactory(
        name="Dell XPS 13",
        description="Developer laptop",
        category="Laptops",
        serial_number="DX-001",
        location="Shelf A",
    )


@pytest.fixture
def admin_store(admin_user):
    return InventoryStore(admin_user)


@pytest.fixture
def staff_store(staff_user):
    return InventoryStore(staff_user)
