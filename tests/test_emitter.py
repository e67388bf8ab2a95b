"""
Unit tests for the event emitter.

Tests cover:
- Subscription and unsubscription, including idempotent handles
- Delivery order and argument passing
- publish() awaiting both sync and async subscribers
- emit() skipping async subscribers
- Closed emitters
"""

import asyncio
from typing import Any

import pytest

from reactdoc import emitter


def test_subscriber_registration() -> None:
    """Test that a subscriber is registered and invoked by emit."""
    bus = emitter.EventEmitter()
    callback_invoked: list[bool] = []

    def test_callback() -> None:
        callback_invoked.append(True)

    bus.subscribe("test.event", test_callback)
    bus.emit("test.event")

    assert callback_invoked == [True]


def test_arguments_passed_to_callback() -> None:
    """Test that positional and keyword arguments reach the callback."""
    bus = emitter.EventEmitter()
    received: dict[str, Any] = {}

    def test_callback(filename: str, size: int, success: bool = False) -> None:
        received["filename"] = filename
        received["size"] = size
        received["success"] = success

    bus.subscribe("file.save", test_callback)
    bus.emit("file.save", "test.txt", 1024, success=True)

    assert received == {"filename": "test.txt", "size": 1024, "success": True}


def test_callbacks_execute_in_subscription_order() -> None:
    """Test that callbacks run in the order they subscribed."""
    bus = emitter.EventEmitter()
    execution_order: list[str] = []

    bus.subscribe("test.event", lambda: execution_order.append("first"))
    bus.subscribe("test.event", lambda: execution_order.append("second"))
    bus.subscribe("test.event", lambda: execution_order.append("third"))
    bus.emit("test.event")

    assert execution_order == ["first", "second", "third"]


def test_emit_returns_results() -> None:
    """Test that emit returns the callback results in order."""
    bus = emitter.EventEmitter()

    bus.subscribe("test.event", lambda value: value * 2)
    bus.subscribe("test.event", lambda value: value + 1)

    assert bus.emit("test.event", 10) == [20, 11]


def test_events_are_isolated() -> None:
    """Test that subscribers only receive their own event name."""
    bus = emitter.EventEmitter()
    calls: list[str] = []

    bus.subscribe("one", lambda: calls.append("one"))
    bus.subscribe("two", lambda: calls.append("two"))
    bus.emit("two")

    assert calls == ["two"]


def test_subscription_handle_unsubscribes() -> None:
    """Test that calling the returned handle removes the subscriber."""
    bus = emitter.EventEmitter()
    calls: list[bool] = []

    unsubscribe = bus.subscribe("test.event", lambda: calls.append(True))
    assert unsubscribe.active

    unsubscribe()
    bus.emit("test.event")

    assert calls == []
    assert not unsubscribe.active


def test_subscription_handle_is_idempotent() -> None:
    """Test that calling a handle twice does not remove other subscribers."""
    bus = emitter.EventEmitter()
    calls: list[str] = []

    def handler() -> None:
        calls.append("handler")

    first = bus.subscribe("test.event", handler)
    bus.subscribe("test.event", handler)

    first()
    first()
    first.unsubscribe()
    bus.emit("test.event")

    # The second registration of the same callback survives
    assert calls == ["handler"]
    assert bus.listener_count("test.event") == 1


def test_unsubscribe_by_callback_removes_every_registration() -> None:
    """Test that unsubscribe() drops every registration of a callback."""
    bus = emitter.EventEmitter()
    calls: list[str] = []

    def handler() -> None:
        calls.append("handler")

    def other() -> None:
        calls.append("other")

    bus.subscribe("test.event", handler)
    bus.subscribe("test.event", other)
    bus.subscribe("test.event", handler)

    bus.unsubscribe("test.event", handler)
    bus.emit("test.event")

    assert calls == ["other"]


def test_unsubscribe_unknown_event_is_noop() -> None:
    """Test that unsubscribing from an unknown event does not raise."""
    bus = emitter.EventEmitter()
    bus.unsubscribe("nonexistent", lambda: None)


def test_unsubscribe_during_delivery_keeps_current_delivery() -> None:
    """
    Test that a subscriber removed by an earlier callback still receives the
    event currently being delivered, and nothing after that.
    """
    bus = emitter.EventEmitter()
    calls: list[str] = []
    handles: dict[str, emitter.Subscription] = {}

    def remover() -> None:
        calls.append("remover")
        handles["late"]()

    def late() -> None:
        calls.append("late")

    bus.subscribe("test.event", remover)
    handles["late"] = bus.subscribe("test.event", late)

    bus.emit("test.event")
    bus.emit("test.event")

    assert calls == ["remover", "late", "remover"]


def test_subscribe_rejects_non_callable() -> None:
    """Test that subscribing something that is not callable raises TypeError."""
    bus = emitter.EventEmitter()

    with pytest.raises(TypeError, match="must be callable"):
        bus.subscribe("test.event", "not a function")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_publish_awaits_async_subscribers() -> None:
    """Test that publish awaits async subscribers and calls sync ones."""
    bus = emitter.EventEmitter()
    calls: list[str] = []

    def sync_handler(data: str) -> str:
        calls.append(f"sync:{data}")
        return "sync"

    async def async_handler(data: str) -> str:
        await asyncio.sleep(0)
        calls.append(f"async:{data}")
        return "async"

    bus.subscribe("test.event", async_handler)
    bus.subscribe("test.event", sync_handler)

    results = await bus.publish("test.event", "value")

    assert calls == ["async:value", "sync:value"]
    assert results == ["async", "sync"]


@pytest.mark.asyncio
async def test_publish_is_sequential() -> None:
    """Test that each async subscriber completes before the next one starts."""
    bus = emitter.EventEmitter()
    execution_order: list[str] = []

    async def slow_handler() -> None:
        execution_order.append("slow_start")
        await asyncio.sleep(0.01)
        execution_order.append("slow_end")

    async def fast_handler() -> None:
        execution_order.append("fast")

    bus.subscribe("test.event", slow_handler)
    bus.subscribe("test.event", fast_handler)

    await bus.publish("test.event")

    assert execution_order == ["slow_start", "slow_end", "fast"]


@pytest.mark.asyncio
async def test_publish_awaits_awaitable_results_of_sync_callbacks() -> None:
    """Test that a sync callback returning a coroutine has it awaited."""
    bus = emitter.EventEmitter()
    calls: list[str] = []

    async def work() -> str:
        calls.append("work")
        return "done"

    bus.subscribe("test.event", lambda: work())

    assert await bus.publish("test.event") == ["done"]
    assert calls == ["work"]


@pytest.mark.asyncio
async def test_emit_skips_async_subscribers() -> None:
    """Test that emit() skips async subscribers entirely."""
    bus = emitter.EventEmitter()
    sync_called: list[bool] = []
    async_called: list[bool] = []

    def sync_handler() -> None:
        sync_called.append(True)

    async def async_handler() -> None:
        async_called.append(True)

    bus.subscribe("test.event", sync_handler)
    bus.subscribe("test.event", async_handler)

    bus.emit("test.event")

    assert sync_called == [True]
    assert async_called == []


def test_emit_closes_coroutines_from_sync_callbacks() -> None:
    """
    Test that emit() closes a coroutine returned by a sync callback instead of
    leaving it unawaited.
    """
    bus = emitter.EventEmitter()
    ran: list[bool] = []

    async def work() -> None:
        ran.append(True)

    bus.subscribe("test.event", lambda: work())

    assert bus.emit("test.event") == []
    assert ran == []


@pytest.mark.asyncio
async def test_closed_emitter_delivers_nothing() -> None:
    """Test that close() drops subscribers and makes new ones inert."""
    bus = emitter.EventEmitter()
    calls: list[str] = []

    bus.subscribe("test.event", lambda: calls.append("before"))
    bus.close()

    late = bus.subscribe("test.event", lambda: calls.append("after"))
    bus.emit("test.event")
    await bus.publish("test.event")

    assert bus.closed
    assert calls == []
    assert not late.active

    # Inert handles can still be called
    late()


def test_clear_keeps_emitter_usable() -> None:
    """Test that clear() removes subscribers but accepts new ones."""
    bus = emitter.EventEmitter()
    calls: list[str] = []

    old = bus.subscribe("test.event", lambda: calls.append("old"))
    bus.clear()
    bus.subscribe("test.event", lambda: calls.append("new"))
    bus.emit("test.event")

    assert calls == ["new"]
    assert not old.active
    assert not bus.closed
