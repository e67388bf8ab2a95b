"""
# reactdoc

Collections of uniquely keyed, asynchronously initialized reactive entries.

An entry begins PENDING and becomes READY once its concrete type signals it.
Its collection announces it with 'insert' only then, forwards its 'update'
and 'error' events afterwards, and drops it again on 'delete'. Entries that
fail to initialize are removed without any collection event.

    import reactdoc

    class Contact(reactdoc.ReactiveEntry):
        phone = reactdoc.reactive()

        def __init__(self, channel, key, phone):
            super().__init__(channel, key)
            self.phone = phone
            self._signal_ready()

    contacts = reactdoc.ReactiveCollection(Contact)
    contacts.on_insert(print)
    await contacts.allocate("Ned", "555-0100")

Subscriber failures are handled by the exception handler an emitter was
created with. set_default_exception_handler() changes the handler new emitters
start with; see reactdoc.handlers for the built-in policies.
"""

from reactdoc import handlers
from reactdoc.collection import ENTRY_FACTORY
from reactdoc.collection import ReactiveCollection
from reactdoc.emitter import EventEmitter
from reactdoc.emitter import Subscription
from reactdoc.emitter import get_default_exception_handler
from reactdoc.emitter import set_default_exception_handler
from reactdoc.entry import EntryState
from reactdoc.entry import ReactiveEntry
from reactdoc.errors import CollectionDisposedError
from reactdoc.errors import DuplicateKeyError
from reactdoc.errors import EntryNotFoundError
from reactdoc.errors import HandlerFailureError
from reactdoc.errors import InitializationError
from reactdoc.errors import InvalidKeyError
from reactdoc.errors import ReactiveError
from reactdoc.events import DELETE
from reactdoc.events import DISPOSE
from reactdoc.events import ERROR
from reactdoc.events import INSERT
from reactdoc.events import UPDATE
from reactdoc.events import ErrorInfo
from reactdoc.events import UpdateInfo
from reactdoc.fields import ReactiveField
from reactdoc.fields import reactive
from reactdoc.fields import reactive_property
from reactdoc.ready import ReadySignal
from reactdoc.ready import SignalState


version_major = 1
version_minor = 0
version_patch = 0
__version__ = f"{version_major}.{version_minor}.{version_patch}"


__all__ = [
    "handlers",
    "ENTRY_FACTORY",
    "ReactiveCollection",
    "EventEmitter",
    "Subscription",
    "get_default_exception_handler",
    "set_default_exception_handler",
    "EntryState",
    "ReactiveEntry",
    "CollectionDisposedError",
    "DuplicateKeyError",
    "EntryNotFoundError",
    "HandlerFailureError",
    "InitializationError",
    "InvalidKeyError",
    "ReactiveError",
    "DELETE",
    "DISPOSE",
    "ERROR",
    "INSERT",
    "UPDATE",
    "ErrorInfo",
    "UpdateInfo",
    "ReactiveField",
    "reactive",
    "reactive_property",
    "ReadySignal",
    "SignalState",
]
