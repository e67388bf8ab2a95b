"""
Unit tests for weak subscriptions and garbage collection.

When a weakly subscribed callback is collected by the GC or deleted by the
user, the emitter should not keep the object alive by maintaining a reference
and should drop the dead subscriber on its own.
"""

import gc

import pytest

from reactdoc import emitter
from reactdoc import events
from reactdoc.collection import ReactiveCollection
from reactdoc.entry import ReactiveEntry


class Note(ReactiveEntry):
    def __init__(self, channel: emitter.EventEmitter, key: str) -> None:
        super().__init__(channel, key)
        self._signal_ready()


def test_weak_reference_regular_function() -> None:
    """Test that weakly held functions can be collected."""
    bus = emitter.EventEmitter()
    invocations: list[str] = []

    def my_callback(data: str) -> None:
        invocations.append(data)

    bus.subscribe("test.event", my_callback, weak=True)

    bus.emit("test.event", "first")
    assert invocations == ["first"]

    del my_callback
    gc.collect()

    bus.emit("test.event", "second")
    assert invocations == ["first"]
    assert bus.listener_count("test.event") == 0


def test_weak_reference_instance_method() -> None:
    """Test that weakly held bound methods die with their instance."""
    bus = emitter.EventEmitter()

    class Handler(object):
        def __init__(self) -> None:
            self.invocations: list[str] = []

        def on_event(self, data: str) -> None:
            self.invocations.append(data)

    handler = Handler()
    bus.subscribe("test.event", handler.on_event, weak=True)

    bus.emit("test.event", "first")
    assert handler.invocations == ["first"]

    del handler
    gc.collect()

    assert bus.listener_count("test.event") == 0
    assert bus.event_names() == []


def test_weak_reference_lambda() -> None:
    """Test that weakly held lambdas can be collected."""
    bus = emitter.EventEmitter()
    invocations: list[str] = []

    my_lambda = lambda data: invocations.append(data)
    bus.subscribe("test.event", my_lambda, weak=True)

    bus.emit("test.event", "first")
    assert len(invocations) == 1

    del my_lambda
    gc.collect()

    bus.emit("test.event", "second")
    assert len(invocations) == 1


def test_strong_reference_keeps_callback_alive() -> None:
    """Test that subscribers are held strongly unless asked otherwise."""
    bus = emitter.EventEmitter()
    invocations: list[str] = []

    my_lambda = lambda data: invocations.append(data)
    bus.subscribe("test.event", my_lambda)

    del my_lambda
    gc.collect()

    bus.emit("test.event", "still here")
    assert invocations == ["still here"]


def test_multiple_subscribers_one_collected() -> None:
    """Test that only the collected subscriber is removed, others remain."""
    bus = emitter.EventEmitter()
    invocations1: list[str] = []
    invocations2: list[str] = []

    callback1 = lambda data: invocations1.append(data)

    def callback2(data: str) -> None:
        invocations2.append(data)

    bus.subscribe("test.event", callback1, weak=True)
    bus.subscribe("test.event", callback2, weak=True)

    bus.emit("test.event", "first")

    del callback1
    gc.collect()

    bus.emit("test.event", "second")
    assert invocations1 == ["first"]
    assert invocations2 == ["first", "second"]


def test_weak_handle_reports_inactive_after_collection() -> None:
    """Test that the subscription handle notices its callback was collected."""
    bus = emitter.EventEmitter()

    callback = lambda: None
    handle = bus.subscribe("test.event", callback, weak=True)
    assert handle.active

    del callback
    gc.collect()

    assert not handle.active
    # Removing an already collected subscriber is harmless
    handle()


@pytest.mark.asyncio
async def test_weak_async_callback_collected() -> None:
    """Test that weakly held async callbacks are collected too."""
    bus = emitter.EventEmitter()

    # noinspection PyUnusedLocal
    async def async_callback(data: str) -> None:
        pass

    bus.subscribe("test.async", async_callback, weak=True)

    del async_callback
    gc.collect()

    assert await bus.publish("test.async", "data") == []


@pytest.mark.asyncio
async def test_weak_collection_observer() -> None:
    """Test that an observer subscribed weakly does not outlive its owner."""
    notes = ReactiveCollection(Note)

    class View(object):
        def __init__(self) -> None:
            self.keys: list[str] = []

        def on_insert(self, snapshot: dict) -> None:
            self.keys.append(snapshot["key"])

    view = View()
    notes.on_insert(view.on_insert, weak=True)

    await notes.allocate("first")
    assert view.keys == ["first"]

    del view
    gc.collect()

    await notes.allocate("second")
    assert notes.listener_count(events.INSERT) == 0
