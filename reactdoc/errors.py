"""
Exception types raised by reactive entries, collections and emitters.

Every exception derives from ReactiveError so callers can catch the whole
family at once. Lookup and validation errors additionally derive from the
matching builtin (LookupError, ValueError) so generic handlers keep working.
"""

from typing import Any


class ReactiveError(Exception):
    """Base class for all reactdoc errors."""


class DuplicateKeyError(ReactiveError):
    """Raised when allocating an entry for a key that is already present."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Entry '{key}' already exists")
        self.key = key


class EntryNotFoundError(ReactiveError, LookupError):
    """Raised when looking up a key that is not present in a collection."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Key '{key}' was not found in collection")
        self.key = key


class InvalidKeyError(ReactiveError, ValueError):
    """Raised synchronously when an entry is constructed with a bad key."""


class InitializationError(ReactiveError):
    """Raised when an entry is discarded before it became ready."""


class CollectionDisposedError(ReactiveError):
    """Raised when allocating on a collection that has been disposed."""


class HandlerFailureError(ReactiveError):
    """
    One or more subscribers failed while an event was being published.

    All subscribers still ran; this error is raised once delivery finished and
    lists every failure the active exception handler chose to surface.
    """

    def __init__(self, event: str, failures: list[tuple[Any, Exception]]) -> None:
        details = ", ".join(
            f"{exception.__class__.__name__}: {exception}" for _, exception in failures
        )
        super().__init__(
            f"{len(failures)} subscriber(s) failed for event '{event}': {details}"
        )
        self.event = event
        self.failures = failures

    @property
    def exceptions(self) -> list[Exception]:
        """The raised exceptions, in delivery order."""
        return [exception for _, exception in self.failures]
