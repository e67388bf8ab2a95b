"""
# Reactive Collection

A keyed registry of reactive entries with collection-scope events.

allocate() is the central operation. Presence in the registry is the
uniqueness guard, so an entry is stored synchronously, before anything is
awaited, and stays visible to has_entry()/get_entry() while still PENDING.
The collection only announces 'insert' once the entry became ready.

Entry events are forwarded to collection subscribers:
    entry 'update' -> collection 'update' (UpdateInfo)
    entry 'error'  -> collection 'error'  (ErrorInfo)
    entry 'delete' -> removed from the registry, then collection 'delete' (key)

Forwarded 'update' and 'error' events wait for the entry's 'insert'. An entry
whose initialization fails is removed without any collection event.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable
from typing import Generic
from typing import Iterator
from typing import Optional
from typing import TypeVar

from reactdoc import emitter
from reactdoc import events
from reactdoc import handlers
from reactdoc import subscriber
from reactdoc.entry import EntryState
from reactdoc.entry import ReactiveEntry
from reactdoc.errors import CollectionDisposedError
from reactdoc.errors import DuplicateKeyError
from reactdoc.errors import EntryNotFoundError
from reactdoc.errors import InitializationError
from reactdoc.errors import InvalidKeyError


logger = logging.getLogger(__name__)


T = TypeVar("T", bound=ReactiveEntry)

ENTRY_FACTORY = Callable[..., ReactiveEntry]
"""
Host plug-in point. Called as factory(channel, key, *args, **kwargs) and
returns a constructed, possibly still PENDING, entry for key.
"""


@dataclass(eq=False)
class _Record(object):
    """Registry slot for one entry."""

    entry: ReactiveEntry
    """The stored entry."""

    channel: emitter.EventEmitter
    """Parent channel handed to the entry; used to relay events into it."""

    inserted: bool = False
    """True once the collection started announcing 'insert' for the entry."""

    settled: Optional[asyncio.Event] = None
    """Set when the entry was either announced or discarded."""

    subscriptions: list[emitter.Subscription] = field(default_factory=list)
    """Forwarding subscriptions on the entry."""


class ReactiveCollection(Generic[T]):
    """
    Registry of reactive entries keyed by string.

    Entries are built by the factory given to the constructor, or by a
    subclass overriding _new_entry().

    Args:
        factory (Optional[ENTRY_FACTORY]): Called as
            factory(channel, key, *args, **kwargs) to construct an entry.
    """

    def __init__(self, factory: Optional[ENTRY_FACTORY] = None) -> None:
        self._factory = factory
        self._records: dict[str, _Record] = {}
        self._lock = threading.RLock()
        self._emitter = emitter.EventEmitter()
        self._disposed = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} entries={len(self._records)}>"

    # -----Allocation----------------------------------------------------------

    def _new_entry(
        self, channel: emitter.EventEmitter, key: str, *args: Any, **kwargs: Any
    ) -> T:
        """
        Construct a new entry for key. Override in subclasses that do not pass
        a factory.
        """
        if self._factory is None:
            raise NotImplementedError(
                f"{type(self).__name__} needs an entry factory or a _new_entry() "
                f"override"
            )
        return self._factory(channel, key, *args, **kwargs)

    async def allocate(self, key: str, *args: Any, **kwargs: Any) -> T:
        """
        Allocate and add a new entry. The entry is removed automatically once
        it is deleted or fails to initialize.

        Args:
            key (str): Key for the new entry.
            *args, **kwargs: Passed on to the entry factory.
        Returns:
            T: The entry, once it is ready and its 'insert' was announced.
        Raises:
            CollectionDisposedError: If the collection was disposed.
            DuplicateKeyError: If key is already present.
            InitializationError: If the entry was deleted before it was
                inserted.
            Exception: Any error raised while constructing the entry, or the
                error the entry failed to initialize with.
        """
        if self._disposed:
            raise CollectionDisposedError(
                f"Cannot allocate '{key}' on a disposed {type(self).__name__}"
            )

        with self._lock:
            if key in self._records:
                raise DuplicateKeyError(key)

            channel = emitter.EventEmitter(self._emitter.exception_handler)
            entry = self._new_entry(channel, key, *args, **kwargs)
            if entry.key != key:
                raise InvalidKeyError(
                    f"Factory built an entry keyed '{entry.key}' for key '{key}'"
                )

            record = _Record(entry=entry, channel=channel, settled=asyncio.Event())
            self._records[key] = record

        self._attach(record)
        logger.debug(f"Allocated entry '{key}'")

        try:
            await entry.ready
        except Exception as e:
            logger.debug(f"Entry '{key}' failed to initialize, discarding: {e}")
            self._discard(record)
            raise

        if entry.state is not EntryState.READY:
            self._discard(record)
            raise InitializationError(f"Entry '{key}' was deleted before it was inserted")

        record.inserted = True
        record.settled.set()
        logger.debug(f"Inserting entry '{key}'")
        await self._emitter.publish(events.INSERT, entry.snapshot())
        return entry

    async def resolve_entry(self, key: str, *args: Any, **kwargs: Any) -> T:
        """
        Get the entry for key once it is ready, allocating it with args and
        kwargs if it is not present.
        """
        try:
            entry = await self.get_entry(key)
        except EntryNotFoundError:
            return await self.allocate(key, *args, **kwargs)

        return await entry.ready

    def _attach(self, record: _Record) -> None:
        entry = record.entry

        async def forward_update(update: events.UpdateInfo) -> None:
            if await self._wait_inserted(record):
                await self._emitter.publish(events.UPDATE, update)

        async def forward_error(error: events.ErrorInfo) -> None:
            if await self._wait_inserted(record):
                await self._emitter.publish(events.ERROR, error)

        async def forward_delete(key: str) -> None:
            await self._on_entry_deleted(record)

        record.subscriptions = [
            entry.on_update(forward_update),
            entry.on_error(forward_error),
            entry.on_delete(forward_delete),
        ]

    @staticmethod
    async def _wait_inserted(record: _Record) -> bool:
        if not record.inserted:
            await record.settled.wait()
        return record.inserted

    def _remove(self, record: _Record) -> bool:
        """Drop record from the registry if it is still the stored one."""
        with self._lock:
            key = record.entry.key
            if self._records.get(key) is record:
                del self._records[key]
                return True
            return False

    def _discard(self, record: _Record) -> None:
        self._remove(record)
        for unsubscribe in record.subscriptions:
            unsubscribe()
        record.settled.set()
        record.channel.close()

    async def _on_entry_deleted(self, record: _Record) -> None:
        key = record.entry.key
        self._remove(record)
        record.channel.close()
        logger.debug(f"Entry '{key}' removed from collection")

        if record.inserted:
            await self._emitter.publish(events.DELETE, key)

    # -----Lookup--------------------------------------------------------------

    async def has_entry(self, key: str) -> None:
        """
        Check that key is present. PENDING entries count as present.

        Raises:
            EntryNotFoundError: If key is not present.
        """
        if key not in self._records:
            raise EntryNotFoundError(key)

    async def get_entry(self, key: str) -> T:
        """
        Get the stored entry for key, which may still be PENDING.

        Raises:
            EntryNotFoundError: If key is not present.
        """
        await self.has_entry(key)
        return self._get_record(key).entry

    def _get_record(self, key: str) -> _Record:
        with self._lock:
            try:
                return self._records[key]
            except KeyError:
                raise EntryNotFoundError(key) from None

    def items(self) -> Iterator[T]:
        """
        Iterate over the entries present at call time.
        Entries added or removed afterwards do not affect the iteration.
        """
        with self._lock:
            entries = [record.entry for record in self._records.values()]
        return iter(entries)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def __iter__(self) -> Iterator[T]:
        return self.items()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Snapshot of every present entry, keyed by entry key."""
        return {entry.key: entry.snapshot() for entry in self.items()}

    # -----Subscriptions-------------------------------------------------------

    def on_insert(
        self, handler: subscriber.CALLBACK, weak: bool = False
    ) -> emitter.Subscription:
        """
        Register a handler for newly inserted entries.
        The handler receives the entry's snapshot dict.
        """
        return self._emitter.subscribe(events.INSERT, handler, weak=weak)

    def on_update(
        self, handler: subscriber.CALLBACK, weak: bool = False
    ) -> emitter.Subscription:
        """Register a handler for entry updates. Receives an UpdateInfo."""
        return self._emitter.subscribe(events.UPDATE, handler, weak=weak)

    def on_error(
        self, handler: subscriber.CALLBACK, weak: bool = False
    ) -> emitter.Subscription:
        """Register a handler for entry errors. Receives an ErrorInfo."""
        return self._emitter.subscribe(events.ERROR, handler, weak=weak)

    def on_delete(
        self, handler: subscriber.CALLBACK, weak: bool = False
    ) -> emitter.Subscription:
        """Register a handler for deleted entries. Receives the key."""
        return self._emitter.subscribe(events.DELETE, handler, weak=weak)

    def on_dispose(
        self, handler: subscriber.CALLBACK, weak: bool = False
    ) -> emitter.Subscription:
        """Register a handler called once when the collection is disposed."""
        return self._emitter.subscribe(events.DISPOSE, handler, weak=weak)

    # -----Entry Relays--------------------------------------------------------

    async def _emit_entry(self, key: str, event: str, *args: Any, **kwargs: Any) -> list[Any]:
        """
        Publish an event on an entry's parent channel.

        Args:
            key (str): Key of the entry to talk to.
            event (str): Event name, e.g. events.ERROR or events.DELETE.
        Returns:
            list[Any]: Results of the entry's channel subscribers.
        Raises:
            EntryNotFoundError: If key is not present.
        """
        record = self._get_record(key)
        return await record.channel.publish(event, *args, **kwargs)

    async def _emit_entry_error(self, key: str, error: BaseException) -> list[Any]:
        """Relay an error to an entry, as if the entry raised it itself."""
        return await self._emit_entry(key, events.ERROR, error)

    # -----Lifecycle-----------------------------------------------------------

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def dispose(self) -> None:
        """
        Announce 'dispose' to every dispose subscriber, then stop delivering
        collection events and refuse new allocations. Present entries are left
        as they are. Later calls do nothing.
        """
        if self._disposed:
            return

        self._disposed = True
        logger.debug(f"Disposing {self!r}")
        try:
            await self._emitter.publish(events.DISPOSE)
        finally:
            self._emitter.close()

    def set_exception_handler(
        self, handler: Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]
    ) -> None:
        """
        Set the exception handler for collection subscriber failures. Entries
        allocated afterwards use it as well.
        """
        self._emitter.set_exception_handler(handler)

    def listener_count(self, event: str) -> int:
        return self._emitter.listener_count(event)
