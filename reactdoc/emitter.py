"""
# Event Emitter

The in-process notification bus shared by entries and collections. Each
emitter keeps an ordered list of subscribers per event name. Delivery order is
subscription order.

Use publish() to await every subscriber, sync or async, one after another.
Use emit() for synchronous delivery; coroutine subscribers are skipped.

A failing subscriber never stops delivery to the remaining subscribers. Each
failure is passed to the emitter's exception handler, and failures the handler
surfaces are raised together as a HandlerFailureError once delivery finished.
"""

import inspect
import logging
import threading
from typing import Any
from typing import Optional

from reactdoc import handlers
from reactdoc import subscriber
from reactdoc.errors import HandlerFailureError


logger = logging.getLogger(__name__)


_USE_DEFAULT = object()

_default_exception_handler: Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER] = (
    handlers.log_and_raise_subscriber_exception
)


def set_default_exception_handler(
    handler: Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER],
) -> None:
    """
    Set the exception handler new emitters are created with.
    Existing emitters keep the handler they already have.

    Args:
        handler (Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]):
            Callable with signature (CALLBACK, str, Exception) -> bool.
            Returns True to surface the failure, False to swallow it.
            Pass None to surface every failure without logging.
    """
    global _default_exception_handler
    _default_exception_handler = handler


def get_default_exception_handler() -> Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]:
    return _default_exception_handler


class Subscription(object):
    """
    Handle returned by EventEmitter.subscribe().
    Calling it removes exactly the subscriber it was created for. Calling it
    again does nothing.
    """

    __slots__ = ("_emitter", "_subscriber")

    def __init__(
        self,
        emitter: Optional["EventEmitter"],
        subscriber_: Optional[subscriber.Subscriber],
    ) -> None:
        self._emitter = emitter
        self._subscriber = subscriber_

    def __call__(self) -> None:
        if self._emitter is None or self._subscriber is None:
            return

        self._emitter._remove_subscriber(self._subscriber)
        self._emitter = None
        self._subscriber = None

    unsubscribe = __call__

    @property
    def active(self) -> bool:
        return self._subscriber is not None and self._subscriber.is_alive


class EventEmitter(object):
    """Named-event publish/subscribe channel."""

    def __init__(self, exception_handler: Any = _USE_DEFAULT) -> None:
        self._subscribers: dict[str, list[subscriber.Subscriber]] = {}
        self._lock = threading.RLock()
        self._closed = False

        if exception_handler is _USE_DEFAULT:
            exception_handler = _default_exception_handler
        self._exception_handler: Optional[
            handlers.SUBSCRIPTION_EXCEPTION_HANDLER
        ] = exception_handler

    # -----Subscriber Management-----------------------------------------------

    def subscribe(
        self, event: str, callback: subscriber.CALLBACK, weak: bool = False
    ) -> Subscription:
        """
        Register a callback for an event name.

        Args:
            event (str): Event name, e.g. 'update'.
            callback (Callable): Function to call when the event is published.
                Can be sync or async.
            weak (bool): Hold the callback through a weak reference so the
                emitter does not keep it alive.
        Returns:
            Subscription: Handle that removes this registration when called.
        Notes:
            Subscribing to a closed emitter is allowed; the returned handle is
            inert and the callback never fires.
        """
        if not callable(callback):
            raise TypeError(f"Subscriber for '{event}' must be callable")

        if self._closed:
            return Subscription(None, None)

        def cleanup(_: Any) -> None:
            # Arg needed to add for weakref creation.
            self._on_subscriber_collected(event)

        sub = subscriber.Subscriber.create(
            event=event, callback=callback, weak=weak, on_collected=cleanup
        )
        with self._lock:
            self._subscribers.setdefault(event, []).append(sub)

        return Subscription(self, sub)

    def unsubscribe(self, event: str, callback: subscriber.CALLBACK) -> None:
        """Remove every registration of callback for event."""
        with self._lock:
            subs = self._subscribers.get(event)
            if not subs:
                return

            for sub in subs:
                if sub.callback == callback:
                    sub.cancel()
            self._prune(event)

    def _remove_subscriber(self, sub: subscriber.Subscriber) -> None:
        with self._lock:
            sub.cancel()
            self._prune(sub.event)

    def _on_subscriber_collected(self, event: str) -> None:
        """Called when a weak subscriber is garbage collected."""
        with self._lock:
            self._prune(event)

    def _prune(self, event: str) -> None:
        """Drop dead subscribers for event. Caller holds the lock."""
        if event not in self._subscribers:
            return

        live = [sub for sub in self._subscribers[event] if sub.is_alive]
        if live:
            self._subscribers[event] = live
        else:
            del self._subscribers[event]

    def _dispatch_list(self, event: str) -> list[tuple[subscriber.Subscriber, Any]]:
        """
        Copy of the subscribers for event with their callbacks resolved.
        Taken once per delivery so subscribers added or removed by a running
        callback do not change the current delivery.
        """
        with self._lock:
            subs = list(self._subscribers.get(event, ()))

        resolved = []
        for sub in subs:
            callback = sub.callback
            if callback is not None:
                resolved.append((sub, callback))
        return resolved

    def set_exception_handler(
        self, handler: Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]
    ) -> None:
        """
        Set the exception handler for subscriber errors.

        Args:
            handler (Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]):
                Callable with signature (CALLBACK, str, Exception) -> bool.
                Returns True to surface the failure, False to swallow it.
                Pass None to surface every failure without logging.
        """
        self._exception_handler = handler

    @property
    def exception_handler(self) -> Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]:
        return self._exception_handler

    def _should_raise(
        self, callback: subscriber.CALLBACK, event: str, exception: Exception
    ) -> bool:
        # Must be called from inside the except block so handlers can read
        # sys.exc_info().
        if self._exception_handler is None:
            return True
        return self._exception_handler(callback, event, exception)

    # -----Delivery------------------------------------------------------------

    def emit(self, event: str, *args: Any, **kwargs: Any) -> list[Any]:
        """
        Deliver an event to all synchronous subscribers.

        Coroutine-function subscribers are skipped entirely; use publish() to
        reach them.

        Args:
            event (str): Event name.
            *args, **kwargs: Arguments passed to every callback.
        Returns:
            list[Any]: Return values of the callbacks that ran successfully.
        Raises:
            HandlerFailureError: If any surfaced subscriber failure occurred.
        """
        results: list[Any] = []
        failures: list[tuple[Any, Exception]] = []

        for sub, callback in self._dispatch_list(event):
            if sub.is_async:
                continue

            try:
                result = callback(*args, **kwargs)
                if inspect.iscoroutine(result):
                    result.close()
                    logger.warning(
                        f"Subscriber {handlers.get_callable_name(callback)} returned "
                        f"a coroutine from synchronous emit of '{event}'; use publish()"
                    )
                    continue
                results.append(result)
            except Exception as e:
                if self._should_raise(callback, event, e):
                    failures.append((callback, e))

        if failures:
            raise HandlerFailureError(event, failures) from failures[0][1]
        return results

    async def publish(self, event: str, *args: Any, **kwargs: Any) -> list[Any]:
        """
        Deliver an event to all subscribers and wait for them.

        Subscribers run sequentially in subscription order. Synchronous
        callbacks are called, awaitable results are awaited before the next
        subscriber runs.

        Args:
            event (str): Event name.
            *args, **kwargs: Arguments passed to every callback.
        Returns:
            list[Any]: Return values of the callbacks that ran successfully.
        Raises:
            HandlerFailureError: If any surfaced subscriber failure occurred.
                Every subscriber has run by the time it is raised.
        """
        results: list[Any] = []
        failures: list[tuple[Any, Exception]] = []

        for _, callback in self._dispatch_list(event):
            try:
                result = callback(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
                results.append(result)
            except Exception as e:
                if self._should_raise(callback, event, e):
                    failures.append((callback, e))

        if failures:
            raise HandlerFailureError(event, failures) from failures[0][1]
        return results

    # -----Lifecycle-----------------------------------------------------------

    def clear(self) -> None:
        """Remove every subscriber. The emitter stays usable."""
        with self._lock:
            for subs in self._subscribers.values():
                for sub in subs:
                    sub.cancel()
            self._subscribers.clear()

    def close(self) -> None:
        """Remove every subscriber and refuse new ones."""
        self._closed = True
        self.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    # -----Introspection-------------------------------------------------------

    def listener_count(self, event: str) -> int:
        """Number of live subscribers for event."""
        with self._lock:
            return sum(1 for sub in self._subscribers.get(event, ()) if sub.is_alive)

    def has_listeners(self, event: str) -> bool:
        return self.listener_count(event) > 0

    def event_names(self) -> list[str]:
        """Sorted event names that currently have subscribers."""
        with self._lock:
            return sorted(self._subscribers.keys())
