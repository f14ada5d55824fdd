"""Project-level views for Stockroom."""

import mimetypes

from django.core.files.storage import default_storage
from django.db import DatabaseError, connection
from django.http import FileResponse, Http404, JsonResponse


def media_proxy(request, path):
    """Proxy media files from S3 storage through Django."""
    try:
        f = default_storage.open(path)
    except (FileNotFoundError, OSError):
        raise Http404

    content_type, _ = mimetypes.guess_type(path)
    return FileResponse(
        f, content_type=content_type or "application/octet-stream"
    )


def ratelimited_view(request, exception=None):
    """Return 429 with a Retry-After header on rate limit."""
    response = JsonResponse(
        {"error": "Rate limit exceeded. Please try again later."},
        status=429,
    )
    response["Retry-After"] = "60"
    return response


def health_check(request):
    """Health check endpoint for monitoring and load balancers."""
    try:
        connection.ensure_connection()
        db_ok = True
    except DatabaseError:
        db_ok = False

    return JsonResponse(
        {"status": "ok" if db_ok else "degraded", "db": db_ok},
        status=200 if db_ok else 503,
    )
