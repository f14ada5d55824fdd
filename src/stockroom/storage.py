"""S3 storage whose URLs point at the Django media proxy."""

from urllib.parse import quote

from storages.backends.s3boto3 import S3Boto3Storage

from django.conf import settings


class ProxiedS3Storage(S3Boto3Storage):
    """Item photos live in S3 but are served by ``media_proxy``, so stored
    photo URLs never expose the bucket endpoint."""

    def url(self, name, parameters=None, expire=None, http_method=None):
        media_url = settings.MEDIA_URL
        if not media_url.startswith("/"):
            media_url = f"/{media_url}"
        return f"{media_url.rstrip('/')}/{quote(name)}"
