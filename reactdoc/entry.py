"""
# Reactive Entry

A single keyed object with an asynchronous readiness lifecycle.

An entry starts PENDING. The concrete entry type calls _signal_ready() once it
finished initializing, which resolves the entry's ready signal with the entry
itself. An error before that point rejects the ready signal and deletes the
entry; an error after that point is only published as an 'error' event.

Observable fields are declared with reactdoc.fields. While READY, changing a
field publishes an 'update' event with an UpdateInfo payload. Writes while
PENDING are stored silently; the owning collection announces them as part of
the 'insert' snapshot.

Every entry listens to the parent channel it was constructed with. An 'error'
published there is handled like an error raised by the entry itself, a
'delete' published there deletes the entry.
"""

import asyncio
import enum
import logging
import threading
from typing import Any
from typing import Optional

from reactdoc import emitter
from reactdoc import events
from reactdoc import fields
from reactdoc import handlers
from reactdoc import subscriber
from reactdoc.errors import InitializationError
from reactdoc.errors import InvalidKeyError
from reactdoc.ready import ReadySignal


logger = logging.getLogger(__name__)


class EntryState(enum.Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"
    DELETED = "deleted"


class ReactiveEntry(object):
    """
    Base class for reactive entries.

    Subclasses declare their observable fields, call super().__init__() before
    touching any of them, and call _signal_ready() when initialized. Errors go
    through _signal_error().

    Args:
        channel (Optional[EventEmitter]): Parent channel the entry listens to
            for relayed 'error' and 'delete' events. Collections pass a fresh
            channel per entry; standalone entries may pass None.
        key (str): Non-empty identifier of the entry.
    Raises:
        InvalidKeyError: If key is not a non-empty string.
    """

    _reactive_fields: dict[str, fields.ReactiveField] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        found = fields.collect_fields(cls)
        for name, field_ in found.items():
            if name == "key":
                raise TypeError(
                    f"{cls.__name__}: 'key' is reserved and cannot be a reactive field"
                )
            if field_.is_property and field_.fset is None:
                raise TypeError(
                    f"{cls.__name__}.{name}: a reactive property needs a setter "
                    f"as well as a getter"
                )

        cls._reactive_fields = found

    def __init__(self, channel: Optional[emitter.EventEmitter], key: str) -> None:
        if not isinstance(key, str) or not key:
            raise InvalidKeyError(
                f"{type(self).__name__} key must be a non-empty string, got {key!r}"
            )

        self._key = key
        self._state = EntryState.PENDING
        self._ready: ReadySignal["ReactiveEntry"] = ReadySignal()

        self._field_values: dict[str, Any] = {}
        self._fields_lock = threading.RLock()

        if channel is None:
            channel = emitter.EventEmitter()
        self._channel = channel
        self._emitter = emitter.EventEmitter(channel.exception_handler)

        self._scheduled: set[asyncio.Task] = set()
        self._scheduled_failures: list[BaseException] = []
        self._last_delivery: Optional[asyncio.Future] = None
        self._delivering: set[asyncio.Task] = set()

        self._channel_subscriptions = [
            channel.subscribe(events.ERROR, self._on_channel_error),
            channel.subscribe(events.DELETE, self._on_channel_delete),
        ]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} key={self._key!r} state={self._state.value}>"

    # -----Properties----------------------------------------------------------

    @property
    def key(self) -> str:
        """Key of the entry in its collection."""
        return self._key

    @property
    def state(self) -> EntryState:
        return self._state

    @property
    def is_pending(self) -> bool:
        """Is the entry still waiting to become ready."""
        return self._state is EntryState.PENDING

    @property
    def is_deleted(self) -> bool:
        return self._state is EntryState.DELETED

    @property
    def ready(self) -> ReadySignal["ReactiveEntry"]:
        """Awaitable that resolves to the entry once it is ready to use."""
        return self._ready

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        """Names of the observable fields, in declaration order."""
        return tuple(cls._reactive_fields)

    def snapshot(self) -> dict[str, Any]:
        """
        Plain dict representation of the entry, read live at call time.

        Returns:
            dict[str, Any]: {"key": key} plus every observable field.
        """
        state = {"key": self._key}
        with self._fields_lock:
            for name, field_ in self._reactive_fields.items():
                state[name] = field_.current(self, field_.default)
        return state

    # -----Subscriptions-------------------------------------------------------

    def on_update(
        self, handler: subscriber.CALLBACK, weak: bool = False
    ) -> emitter.Subscription:
        """
        Register a handler for field updates.
        The handler receives an UpdateInfo.
        """
        return self._emitter.subscribe(events.UPDATE, handler, weak=weak)

    def on_error(
        self, handler: subscriber.CALLBACK, weak: bool = False
    ) -> emitter.Subscription:
        """
        Register a handler for errors raised after the entry became ready.
        The handler receives an ErrorInfo. Errors published while nobody is
        subscribed are dropped.
        """
        return self._emitter.subscribe(events.ERROR, handler, weak=weak)

    def on_delete(
        self, handler: subscriber.CALLBACK, weak: bool = False
    ) -> emitter.Subscription:
        """
        Register a handler for deletion. The handler receives the key.
        """
        return self._emitter.subscribe(events.DELETE, handler, weak=weak)

    # -----Fields--------------------------------------------------------------

    def _store_field(self, name: str, value: Any) -> bool:
        """Write a field without notifying. Returns True if the value changed."""
        try:
            field_ = self._reactive_fields[name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__} has no reactive field '{name}'"
            ) from None

        with self._fields_lock:
            current = field_.current(self, fields.UNSET)
            if current is not fields.UNSET and (current is value or current == value):
                return False

            field_.write(self, value)
            return True

    def _set_field(self, name: str, value: Any) -> bool:
        """
        Notifying setter used by attribute assignment.

        The update is delivered by a task on the running loop, after every
        update queued before it. Without a running loop only synchronous
        subscribers are notified.
        """
        changed = self._store_field(name, value)
        if changed and self._state is EntryState.READY:
            self._schedule_update(events.UpdateInfo(self._key, name, value))
        return changed

    async def set_field(self, name: str, value: Any) -> bool:
        """
        Notifying setter that waits for the update to be delivered.

        Updates queued earlier by attribute assignment are delivered first.
        Called from inside an update subscriber, the update is delivered
        right away.

        Args:
            name (str): Observable field name.
            value (Any): New value.
        Returns:
            bool: True if the value changed and an update was published.
        Raises:
            AttributeError: If name is not an observable field.
            HandlerFailureError: If an update subscriber failed.
        """
        changed = self._store_field(name, value)
        if not changed or self._state is not EntryState.READY:
            return changed

        info = events.UpdateInfo(self._key, name, value)
        if asyncio.current_task() in self._delivering:
            await self._emitter.publish(events.UPDATE, info)
            return changed

        slot = asyncio.get_running_loop().create_future()
        previous, self._last_delivery = self._last_delivery, slot
        try:
            await self._deliver_update(info, previous)
        finally:
            slot.set_result(None)
        return changed

    def _schedule_update(self, info: events.UpdateInfo) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._emitter.emit(events.UPDATE, info)
            return

        task = loop.create_task(self._deliver_update(info, self._last_delivery))
        self._last_delivery = task
        self._scheduled.add(task)
        task.add_done_callback(self._on_scheduled_done)

    async def _deliver_update(
        self, info: events.UpdateInfo, previous: Optional[asyncio.Future]
    ) -> None:
        """Publish info once the delivery queued before it has finished."""
        if previous is not None and not previous.done():
            # Only the finish matters; its failure is reported on its own.
            await asyncio.wait([previous])

        task = asyncio.current_task()
        self._delivering.add(task)
        try:
            await self._emitter.publish(events.UPDATE, info)
        finally:
            self._delivering.discard(task)

    def _on_scheduled_done(self, task: asyncio.Task) -> None:
        self._scheduled.discard(task)
        if task.cancelled():
            return

        exception = task.exception()
        if exception is not None:
            logger.error(
                f"Update delivery failed for entry '{self._key}': {exception}",
                exc_info=exception,
            )
            self._scheduled_failures.append(exception)

    async def flush(self) -> None:
        """
        Wait for every update scheduled by attribute assignment.

        Raises:
            Exception: The first delivery failure since the last flush.
        """
        while self._scheduled:
            await asyncio.gather(*list(self._scheduled), return_exceptions=True)

        failures, self._scheduled_failures = self._scheduled_failures, []
        if failures:
            raise failures[0]

    # -----Lifecycle-----------------------------------------------------------

    def _signal_ready(self) -> bool:
        """
        Mark the entry as initialized and resolve its ready signal.
        Only the first call while PENDING has an effect.

        Returns:
            bool: True if this call made the entry ready.
        """
        if self._state is not EntryState.PENDING:
            return False

        self._state = EntryState.READY
        self._ready.resolve(self)
        logger.debug(f"Entry '{self._key}' is ready")
        return True

    async def _signal_error(self, error: BaseException) -> None:
        """
        Handle an error raised by the entry or relayed by its parent channel.

        While PENDING, rejects the ready signal with error and deletes the
        entry. While READY, publishes an 'error' event; the entry stays.
        Ignored once the entry failed or was deleted.
        """
        if self._state is EntryState.PENDING:
            self._state = EntryState.FAILED
            self._ready.reject(error)
            logger.debug(f"Entry '{self._key}' failed to initialize: {error}")
            await self._delete()
        elif self._state is EntryState.READY:
            if not self._emitter.has_listeners(events.ERROR):
                logger.debug(
                    f"Entry '{self._key}' error dropped, no subscribers: {error}"
                )
            await self._emitter.publish(
                events.ERROR, events.ErrorInfo(self._key, error)
            )
        else:
            logger.debug(
                f"Entry '{self._key}' error ignored in state "
                f"{self._state.value}: {error}"
            )

    async def request_delete(self) -> None:
        """
        Delete the entry: publish 'delete' with the key to every subscriber,
        then release all subscriptions. Deleting a PENDING entry rejects its
        ready signal with InitializationError. Later calls do nothing.
        """
        if self._state is EntryState.DELETED:
            return

        if self._state is EntryState.PENDING:
            self._state = EntryState.FAILED
            self._ready.reject(
                InitializationError(
                    f"Entry '{self._key}' was deleted before it became ready"
                )
            )
        await self._delete()

    async def _delete(self) -> None:
        if self._state is EntryState.DELETED:
            return

        self._state = EntryState.DELETED
        logger.debug(f"Deleting entry '{self._key}'")

        for unsubscribe in self._channel_subscriptions:
            unsubscribe()
        self._channel_subscriptions = []

        try:
            await self._emitter.publish(events.DELETE, self._key)
        finally:
            self._emitter.close()

    def _on_channel_error(self, error: BaseException) -> Any:
        return self._signal_error(error)

    def _on_channel_delete(self, *_: Any) -> Any:
        return self.request_delete()

    # -----Introspection-------------------------------------------------------

    def listener_count(self, event: str) -> int:
        return self._emitter.listener_count(event)

    def set_exception_handler(
        self, handler: Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]
    ) -> None:
        """Set the exception handler for failures of this entry's subscribers."""
        self._emitter.set_exception_handler(handler)
