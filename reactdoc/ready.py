"""
Settle-once readiness signal.

A ReadySignal is resolved with a value or rejected with an exception exactly
once; later attempts are ignored. Awaiting it returns the value or raises the
exception. Waiter futures are created on the running loop only when someone
awaits, so a signal can be created and settled outside an event loop and an
unobserved rejection is never reported as an unretrieved future exception.
"""

import asyncio
import enum
from types import TracebackType
from typing import Any
from typing import Generator
from typing import Generic
from typing import Optional
from typing import TypeVar

T = TypeVar("T")


class SignalState(enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class ReadySignal(Generic[T]):
    """One-shot completion slot."""

    def __init__(self) -> None:
        self._state = SignalState.PENDING
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None
        self._traceback: Optional[TracebackType] = None
        self._waiters: list[asyncio.Future] = []

    def __repr__(self) -> str:
        return f"<ReadySignal {self._state.value}>"

    @property
    def state(self) -> SignalState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state is SignalState.PENDING

    @property
    def settled(self) -> bool:
        return self._state is not SignalState.PENDING

    @property
    def resolved(self) -> bool:
        return self._state is SignalState.RESOLVED

    @property
    def rejected(self) -> bool:
        return self._state is SignalState.REJECTED

    def resolve(self, value: T) -> bool:
        """Settle with value. Returns False if already settled."""
        if self.settled:
            return False

        self._state = SignalState.RESOLVED
        self._value = value
        self._wake()
        return True

    def reject(self, error: BaseException) -> bool:
        """Settle with error. Returns False if already settled."""
        if self.settled:
            return False

        self._state = SignalState.REJECTED
        self._error = error
        self._traceback = error.__traceback__
        self._wake()
        return True

    def result(self) -> T:
        """
        The settled value, without waiting.

        Raises:
            asyncio.InvalidStateError: If the signal is still pending.
            BaseException: The rejection error, if rejected.
        """
        if self.pending:
            raise asyncio.InvalidStateError("Signal is still pending")
        if self._error is not None:
            # Each waiter re-raises from the original traceback.
            raise self._error.with_traceback(self._traceback)
        return self._value

    def exception(self) -> Optional[BaseException]:
        if self.pending:
            raise asyncio.InvalidStateError("Signal is still pending")
        return self._error

    async def wait(self) -> T:
        if self.settled:
            return self.result()

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
        return self.result()

    def __await__(self) -> Generator[Any, None, T]:
        return self.wait().__await__()

    def _wake(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                # Waiters only carry the wake up; the outcome is read back
                # through result().
                waiter.get_loop().call_soon_threadsafe(_set_if_pending, waiter)


def _set_if_pending(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)
