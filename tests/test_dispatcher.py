"""Tests for handler invocation and isolation."""

import asyncio
import logging

import pytest

from conftest import deepbook_event, package_event
from flux_events.dispatcher import Dispatcher
from flux_events.events.normalizer import normalize
from flux_events.events.registry import SubscriptionRegistry


def _dispatcher(match_short_names=True):
    registry = SubscriptionRegistry(match_short_names=match_short_names)
    return registry, Dispatcher(registry)


async def test_contents_only_handlers_receive_contents():
    registry, dispatcher = _dispatcher()
    received = []
    registry.register("Foo", received.append)
    registry.register("0xabc::*::Foo", received.append)
    registry.register("0xabc::mod::Foo", received.append)

    count = await dispatcher.dispatch(normalize(package_event("0xabc::mod::Foo", contents={"x": 1})))

    assert count == 3
    assert received == [{"x": 1}, {"x": 1}, {"x": 1}]


async def test_wildcard_handler_receives_rich_payload():
    registry, dispatcher = _dispatcher()
    received = []
    registry.register("*", received.append)
    raw = package_event("0xabc::mod::Foo")

    await dispatcher.dispatch(normalize(raw))

    assert received == [raw]
    assert received[0]["data"]["event_type"] == "0xabc::mod::Foo"


async def test_flat_event_without_contents_delivers_data():
    registry, dispatcher = _dispatcher(match_short_names=False)
    received, everything = [], []
    registry.register("deepbook_live_trades", received.append)
    registry.register("*", everything.append)
    raw = deepbook_event(price="3.0")

    await dispatcher.dispatch(normalize(raw))

    assert received == [{"price": "3.0"}]
    assert everything == [raw]


async def test_async_handlers_are_awaited_in_order():
    registry, dispatcher = _dispatcher()
    calls = []

    async def first(payload):
        calls.append(("first", payload))

    def second(payload):
        calls.append(("second", payload))

    registry.register("Foo", first)
    registry.register("Foo", second)

    await dispatcher.dispatch(normalize(package_event(contents={"n": 1})))

    assert calls == [("first", {"n": 1}), ("second", {"n": 1})]


async def test_failing_handler_does_not_stop_others(caplog):
    registry, dispatcher = _dispatcher()
    received = []

    def broken(payload):
        raise RuntimeError("boom")

    async def broken_async(payload):
        raise ValueError("async boom")

    registry.register("Foo", broken)
    registry.register("Foo", broken_async)
    registry.register("Foo", received.append)

    with caplog.at_level(logging.ERROR):
        await dispatcher.dispatch(normalize(package_event(contents={"x": 1})))
        await dispatcher.dispatch(normalize(package_event(contents={"x": 2})))

    assert received == [{"x": 1}, {"x": 2}]
    assert "Error in event handler for 0xabc::mod::Foo" in caplog.text


async def test_no_subscribers_dispatches_nothing():
    _, dispatcher = _dispatcher()
    assert await dispatcher.dispatch(normalize(package_event())) == 0


async def test_cancelled_handler_does_not_stop_others(caplog):
    registry, dispatcher = _dispatcher()
    received = []

    async def cancelled(payload):
        raise asyncio.CancelledError()

    registry.register("Foo", cancelled)
    registry.register("Foo", received.append)

    with caplog.at_level(logging.ERROR):
        count = await dispatcher.dispatch(normalize(package_event(contents={"x": 1})))

    assert count == 2
    assert received == [{"x": 1}]
    assert "Event handler for 0xabc::mod::Foo was cancelled" in caplog.text


async def test_cancelling_dispatch_is_not_swallowed():
    registry, dispatcher = _dispatcher()
    started = asyncio.Event()
    received = []

    async def slow(payload):
        started.set()
        await asyncio.sleep(10)

    registry.register("Foo", slow)
    registry.register("Foo", received.append)

    task = asyncio.create_task(dispatcher.dispatch(normalize(package_event())))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert received == []
