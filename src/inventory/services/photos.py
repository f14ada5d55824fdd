"""Item photo storage through Django's storage API."""

import logging
import os
import uuid
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction

from ..exceptions import ValidationError
from . import permissions

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def _read(content):
    if isinstance(content, bytes):
        return content
    if hasattr(content, "seek"):
        content.seek(0)
    return content.read()


def validate_photo(data: bytes, filename: str) -> None:
    """Reject anything that is not a reasonably sized image."""
    max_bytes = getattr(settings, "PHOTO_MAX_UPLOAD_BYTES", 5 * 1024 * 1024)
    if not data:
        raise ValidationError({"photo": "No file provided."})
    if len(data) > max_bytes:
        raise ValidationError(
            {
                "photo": f"File too large. Maximum size is "
                f"{max_bytes // (1024 * 1024)} MB."
            }
        )
    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            {"photo": "Only image files (JPEG, PNG, GIF, WebP) are allowed."}
        )
    try:
        Image.open(BytesIO(data)).verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError({"photo": "File is not a valid image."})


def upload_item_photo(content, filename: str) -> dict:
    """Store an item photo and return ``{"url": ..., "file_id": ...}``.

    ``file_id`` is the storage name and is what ``delete_item_photo``
    expects.
    """
    data = _read(content)
    validate_photo(data, filename)
    prefix = getattr(settings, "PHOTO_UPLOAD_PREFIX", "inventory-photos")
    basename = os.path.basename(filename).replace(" ", "_")
    name = f"{prefix}/{uuid.uuid4().hex[:12]}-{basename}"
    stored = default_storage.save(name, ContentFile(data))
    logger.info("Uploaded item photo %s (%d bytes)", stored, len(data))
    return {"url": default_storage.url(stored), "file_id": stored}


def delete_item_photo(file_id: str) -> bool:
    """Remove a stored photo. Returns False if it was already gone."""
    if not file_id:
        return False
    if not default_storage.exists(file_id):
        logger.info("Item photo %s already removed", file_id)
        return False
    default_storage.delete(file_id)
    logger.info("Deleted item photo %s", file_id)
    return True


def _schedule_delete(file_id):
    from ..tasks import delete_photo

    transaction.on_commit(lambda: delete_photo.delay(file_id))


def set_item_photo(store, item_id, content, filename):
    """Upload a photo and attach it to an item, replacing any old one."""
    if not permissions.can_manage_items(store.user):
        raise PermissionDenied
    item = store.get_item(item_id)
    photo = upload_item_photo(content, filename)
    try:
        updated = store.update_item(
            item.pk, photo_url=photo["url"], photo_file_id=photo["file_id"]
        )
    except Exception:
        delete_item_photo(photo["file_id"])
        raise
    if item.photo_file_id:
        _schedule_delete(item.photo_file_id)
    return updated


def clear_item_photo(store, item_id):
    """Detach an item's photo and remove the stored file."""
    if not permissions.can_manage_items(store.user):
        raise PermissionDenied
    item = store.get_item(item_id)
    if not item.photo_file_id and not item.photo_url:
        return item
    updated = store.update_item(item.pk, photo_url="", photo_file_id="")
    if item.photo_file_id:
        _schedule_delete(item.photo_file_id)
    return updated
