"""Error kinds raised by the inventory services.

Validation failures use Django's ``ValidationError`` and database failures
propagate as ``django.db.DatabaseError``; both are re-exported here so
callers can import every error kind from one place.
"""

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError

__all__ = [
    "DatabaseError",
    "NotFoundError",
    "StateError",
    "ValidationError",
]


class NotFoundError(ObjectDoesNotExist):
    """A referenced id does not exist."""

    def __init__(self, entity, pk):
        self.entity = entity
        self.pk = pk
        super().__init__(f"{entity} {pk} not found.")


class StateError(Exception):
    """Operation attempted on an entity not in the required state."""
