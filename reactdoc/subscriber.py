"""
Subscriber data structures and type definitions for event emitters.

Defines the Subscriber dataclass which wraps a callback with the event it
listens to and whether it is a coroutine function. Callbacks are held strongly
by default; weak subscribers are held through weak references so an emitter
never keeps an observer alive on its own. Also defines the CALLBACK type alias
used throughout the package for type hints.
"""

import inspect
import weakref
from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Coroutine
from typing import Optional
from typing import Union

CALLBACK = Union[Callable[..., Any], Callable[..., Coroutine[Any, Any, Any]]]
"""
The callback end point that event data is forwarded to. Can be sync or async;
if it returns an awaitable, the emitter awaits it before moving on to the next
subscriber.
"""


class StrongRef(object):
    """Callable holder matching the weakref call protocol for strong callbacks."""

    __slots__ = ("_callback",)

    def __init__(self, callback: CALLBACK) -> None:
        self._callback = callback

    def __call__(self) -> CALLBACK:
        return self._callback


CALLBACK_REF = Union[StrongRef, weakref.ref, weakref.WeakMethod]


def make_ref(
    callback: CALLBACK,
    weak: bool = False,
    on_collected: Optional[Callable[[Any], None]] = None,
) -> CALLBACK_REF:
    """Create the appropriate reference for any callback type."""
    if not weak:
        return StrongRef(callback)

    if hasattr(callback, "__self__"):
        return weakref.WeakMethod(callback, on_collected)
    else:
        return weakref.ref(callback, on_collected)


@dataclass(eq=False)
class Subscriber(object):
    """A registered callback for a single event name."""

    callback_ref: CALLBACK_REF
    """
    The end point that data is forwarded to. i.e. what gets ran.
    Either a strong holder or a weak reference, both called to get the
    callback.
    """

    event: str
    """The event name the subscriber is listening to."""

    is_async: bool
    """If the callback is a coroutine function or not..."""

    weak: bool = False
    """If the callback is held by weak reference."""

    active: bool = True
    """Flipped off when the subscription is cancelled."""

    @classmethod
    def create(
        cls,
        event: str,
        callback: CALLBACK,
        weak: bool = False,
        on_collected: Optional[Callable[[Any], None]] = None,
    ) -> "Subscriber":
        return cls(
            callback_ref=make_ref(callback, weak, on_collected),
            event=event,
            is_async=inspect.iscoroutinefunction(callback),
            weak=weak,
        )

    @property
    def callback(self) -> Optional[CALLBACK]:
        """Get the live callback, or None if collected or cancelled."""
        if not self.active:
            return None
        return self.callback_ref()

    @property
    def is_alive(self) -> bool:
        return self.callback is not None

    def cancel(self) -> None:
        self.active = False
