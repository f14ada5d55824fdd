"""JSON request/response helpers shared by the app views."""

import functools
import json
import logging

from django.core.exceptions import (
    ObjectDoesNotExist,
    PermissionDenied,
    ValidationError,
)
from django.db import DatabaseError
from django.http import JsonResponse

from inventory.exceptions import StateError

logger = logging.getLogger(__name__)


class BadPayload(ValueError):
    """The request body is not a JSON object."""


def read_payload(request):
    """Return the request's JSON object body (form data as a fallback)."""
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except (json.JSONDecodeError, ValueError):
            raise BadPayload("Invalid JSON")
        if not isinstance(data, dict):
            raise BadPayload("Expected a JSON object")
        return data
    return {key: request.POST.get(key) for key in request.POST}


def validation_messages(exc):
    if hasattr(exc, "error_dict"):
        return exc.message_dict
    return {"__all__": exc.messages}


def error_response(message, status, **extra):
    return JsonResponse({"error": message, **extra}, status=status)


def json_view(methods=("GET",)):
    """Decorate a view returning JSON, mapping domain errors to statuses.

    ``ValidationError`` is 400, ``PermissionDenied`` 403, missing objects
    404, ``StateError`` 409 and ``DatabaseError`` 503.
    """

    def decorator(view):
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                return error_response(
                    f"{' or '.join(methods)} required", status=405
                )
            try:
                return view(request, *args, **kwargs)
            except BadPayload as exc:
                return error_response(str(exc), status=400)
            except ValidationError as exc:
                return error_response(
                    "Validation failed",
                    status=400,
                    errors=validation_messages(exc),
                )
            except PermissionDenied:
                return error_response("Permission denied", status=403)
            except ObjectDoesNotExist as exc:
                return error_response(str(exc) or "Not found", status=404)
            except StateError as exc:
                return error_response(str(exc), status=409)
            except DatabaseError as exc:
                logger.warning(
                    "%s %s failed: %s", request.method, request.path, exc
                )
                return error_response(str(exc), status=503)

        return wrapper

    return decorator
