"""
Event names and payloads shared by entries and collections.

Entries publish UPDATE, ERROR and DELETE on their own emitter. Collections
publish INSERT, UPDATE, ERROR, DELETE and DISPOSE on theirs, forwarding the
entry-scoped payloads unchanged.
"""

from dataclasses import dataclass
from typing import Any


INSERT = "insert"
"""Collection scope. Payload: the new entry's snapshot dict."""

UPDATE = "update"
"""Entry and collection scope. Payload: UpdateInfo."""

ERROR = "error"
"""Entry and collection scope. Payload: ErrorInfo."""

DELETE = "delete"
"""Entry and collection scope. Payload: the deleted entry's key."""

DISPOSE = "dispose"
"""Collection scope. No payload."""


@dataclass(frozen=True)
class UpdateInfo(object):
    """A single field change on an entry."""

    key: str
    """Key of the entry in its collection."""

    field: str
    """Name of the field that changed."""

    value: Any
    """The new value of the field."""


@dataclass(frozen=True)
class ErrorInfo(object):
    """An error raised by an entry after it became ready."""

    key: str
    """Key of the entry in its collection."""

    error: BaseException
    """The error describing the failure."""
