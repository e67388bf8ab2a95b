"""
Failure policies for event subscribers.

An emitter keeps delivering after a subscriber raises. It passes each failure
to its exception handler, which answers RAISE to have the failure included in
the HandlerFailureError raised once delivery finished, or IGNORE to drop it.
"""

import logging
import sys
from typing import Any
from typing import Callable

from reactdoc import subscriber


logger = logging.getLogger(__name__)


SUBSCRIPTION_EXCEPTION_HANDLER = Callable[[subscriber.CALLBACK, str, Exception], bool]
"""(callback, event, exception) -> RAISE or IGNORE."""

RAISE = True
IGNORE = False


def get_callable_name(callable_: Any) -> str:
    """Readable name for a subscriber, e.g. 'Contact.on_update' for a bound method."""
    owner = getattr(callable_, "__self__", None)
    name = getattr(callable_, "__qualname__", None) or getattr(
        callable_, "__name__", None
    )
    if name is None:
        return repr(callable_)
    if owner is not None:
        return f"{type(owner).__name__}.{getattr(callable_, '__name__', name)}"
    return name


# -----Subscriber Exception Handlers-------------------------------------------


def log_and_raise_subscriber_exception(
    callback: subscriber.CALLBACK, event: str, exception: Exception
) -> bool:
    """Default policy. Log the failure with its traceback and surface it."""
    logger.error(
        f"Exception in subscriber:\n"
        f"  Event:     {event}\n"
        f"  Callback:  {get_callable_name(callback)}\n"
        f"  Exception: {exception.__class__.__name__}: {exception}",
        exc_info=exception,
    )
    return RAISE


def log_and_continue_subscriber_exception(
    callback: subscriber.CALLBACK, event: str, exception: Exception
) -> bool:
    """Log a warning and drop the failure."""
    logger.warning(
        f"'{event}' subscriber {get_callable_name(callback)} failed, "
        f"ignoring: {exception.__class__.__name__}: {exception}"
    )
    return IGNORE


def silent_subscriber_exception(
    callback: subscriber.CALLBACK, event: str, exception: Exception
) -> bool:
    return IGNORE


exceptions_caught: list[dict[str, Any]] = []
"""Records appended by collect_subscriber_exception. Clear it when done."""


def collect_subscriber_exception(
    callback: subscriber.CALLBACK, event: str, exception: Exception
) -> bool:
    """
    Record the failure in exceptions_caught and drop it.

    Each record holds the callback name, the event, a 'Type: message' string
    and the sys.exc_info() triple, so tracebacks can be inspected later.
    """
    exceptions_caught.append(
        {
            "callback": get_callable_name(callback),
            "event": event,
            "exception": f"{exception.__class__.__name__}: {exception}",
            "exc_info": sys.exc_info(),
        }
    )
    return IGNORE
