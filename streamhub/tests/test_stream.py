"""Tests for the buffered push-to-pull stream."""
from __future__ import annotations

import asyncio
import gc
from typing import Any, Callable

import pytest

from ..core.errors import ListenerError, SubscriptionOverflowError
from ..core.events import InMemoryEventTarget, Listener, PubSubEvent
from ..core.stream import BridgedStream, OverflowPolicy, StreamState
from .helpers import DONE, activate, next_value, take


class Source:
    """Manual setup function that exposes push/stop to the test."""

    def __init__(self) -> None:
        self.push: Callable[[Any], None] | None = None
        self.stop: Callable[[BaseException | None], None] | None = None
        self.setups = 0
        self.teardowns = 0

    def __call__(self, push, stop):
        self.setups += 1
        self.push = push
        self.stop = stop
        return self._teardown

    def _teardown(self) -> None:
        self.teardowns += 1


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        BridgedStream(Source(), capacity=0)
    with pytest.raises(ValueError):
        BridgedStream(Source(), capacity=None)  # type: ignore[arg-type]


def test_defaults() -> None:
    stream = BridgedStream(Source())
    assert stream.capacity == 100
    assert stream.overflow is OverflowPolicy.DROP_OLDEST
    assert stream.state is StreamState.IDLE


@pytest.mark.asyncio
async def test_setup_is_lazy() -> None:
    source = Source()
    stream = BridgedStream(source)
    assert source.setups == 0

    pending = await activate(stream)
    assert source.setups == 1
    assert stream.state is StreamState.ACTIVE

    source.push("first")
    assert await pending == "first"
    await stream.aclose()


@pytest.mark.asyncio
async def test_closing_idle_stream_never_sets_up() -> None:
    source = Source()
    stream = BridgedStream(source)

    await stream.aclose()

    assert await next_value(stream) is DONE
    assert source.setups == 0
    assert source.teardowns == 0
    assert stream.state is StreamState.CLOSED


@pytest.mark.asyncio
async def test_values_arrive_in_push_order() -> None:
    source = Source()
    stream = BridgedStream(source, capacity=3)
    pending = await activate(stream)

    for value in (1, 2, 3):
        source.push(value)

    assert await pending == 1
    assert await take(stream, 2) == [2, 3]
    await stream.aclose()


@pytest.mark.asyncio
async def test_drop_oldest_keeps_latest_values() -> None:
    source = Source()
    stream = BridgedStream(source, capacity=2)
    pending = await activate(stream)

    for value in (1, 2, 3):
        source.push(value)

    assert stream.buffered == 2
    assert await pending == 2
    assert await anext(stream) == 3
    await stream.aclose()


@pytest.mark.asyncio
async def test_drop_newest_keeps_earliest_values() -> None:
    source = Source()
    stream = BridgedStream(source, capacity=2, overflow=OverflowPolicy.DROP_NEWEST)
    pending = await activate(stream)

    for value in (1, 2, 3):
        source.push(value)

    assert await pending == 1
    assert await anext(stream) == 2
    source.push(4)
    assert await anext(stream) == 4
    await stream.aclose()


@pytest.mark.asyncio
async def test_reject_fails_the_stream() -> None:
    source = Source()
    stream = BridgedStream(source, capacity=2, overflow="reject")
    pending = await activate(stream)

    for value in (1, 2, 3):
        source.push(value)

    assert stream.state is StreamState.CLOSED
    assert source.teardowns == 1
    with pytest.raises(SubscriptionOverflowError) as excinfo:
        await pending
    assert excinfo.value.capacity == 2
    assert isinstance(excinfo.value, OverflowError)
    assert await next_value(stream) is DONE


@pytest.mark.asyncio
async def test_close_after_failure_discards_error() -> None:
    source = Source()
    stream = BridgedStream(source, capacity=1, overflow=OverflowPolicy.REJECT)
    pending = await activate(stream)

    for value in (1, 2, 3):
        source.push(value)
    assert stream.state is StreamState.CLOSED
    await stream.aclose()

    assert await pending is DONE
    assert await next_value(stream) is DONE
    assert source.teardowns == 1


@pytest.mark.asyncio
async def test_close_after_failure_before_pull() -> None:
    source = Source()
    stream = BridgedStream(source)
    pending = await activate(stream)
    source.push("value")
    assert await pending == "value"

    source.stop(RuntimeError("upstream failed"))
    await stream.aclose()

    assert await next_value(stream) is DONE


@pytest.mark.asyncio
async def test_second_concurrent_pull_is_refused() -> None:
    source = Source()
    stream = BridgedStream(source)
    first = await activate(stream)

    with pytest.raises(RuntimeError, match="already being awaited"):
        await anext(stream)

    await stream.aclose()
    done, _ = await asyncio.wait({first}, timeout=1)
    assert first in done
    assert first.result() is DONE


@pytest.mark.asyncio
async def test_abandoned_stream_releases_on_collection() -> None:
    source = Source()
    stream = BridgedStream(source)
    pending = await activate(stream)
    source.push("value")
    assert await pending == "value"
    push = source.push

    del stream, pending
    gc.collect()

    assert source.teardowns == 1
    push("ignored")


@pytest.mark.asyncio
async def test_close_wakes_pending_pull_and_tears_down_once() -> None:
    source = Source()
    stream = BridgedStream(source)
    pending = await activate(stream)

    await stream.aclose()
    await stream.aclose()
    stream.close()

    assert await pending is DONE
    assert source.teardowns == 1
    source.push("late")
    assert stream.buffered == 0
    assert await next_value(stream) is DONE


@pytest.mark.asyncio
async def test_context_manager_releases_on_exit() -> None:
    source = Source()
    async with BridgedStream(source) as stream:
        pending = await activate(stream)
        source.push("value")
        assert await pending == "value"
        assert source.teardowns == 0

    assert source.teardowns == 1
    assert stream.state is StreamState.CLOSED


@pytest.mark.asyncio
async def test_stop_drains_buffered_values() -> None:
    source = Source()
    stream = BridgedStream(source)
    pending = await activate(stream)

    source.push("a")
    source.push("b")
    source.stop(None)
    source.push("ignored")

    assert stream.state is StreamState.DRAINING
    assert source.teardowns == 1
    assert await pending == "a"
    assert await anext(stream) == "b"
    assert stream.state is StreamState.CLOSED
    assert await next_value(stream) is DONE


@pytest.mark.asyncio
async def test_stop_with_error_raises_once() -> None:
    source = Source()
    stream = BridgedStream(source)
    pending = await activate(stream)

    source.push("discarded")
    source.stop(RuntimeError("upstream failed"))

    with pytest.raises(RuntimeError, match="upstream failed"):
        await pending
    assert await next_value(stream) is DONE
    assert source.teardowns == 1


@pytest.mark.asyncio
async def test_setup_failure_closes_stream() -> None:
    def setup(push, stop):
        raise ConnectionError("bus unavailable")

    stream = BridgedStream(setup)

    with pytest.raises(ConnectionError):
        await anext(stream)
    assert stream.state is StreamState.CLOSED
    assert await next_value(stream) is DONE


@pytest.mark.asyncio
async def test_setup_may_stop_immediately() -> None:
    released: list[bool] = []

    def setup(push, stop):
        push("only")
        stop(None)
        return lambda: released.append(True)

    stream = BridgedStream(setup)

    assert await anext(stream) == "only"
    assert await next_value(stream) is DONE
    assert released == [True]


@pytest.mark.asyncio
async def test_cancelled_pull_leaves_stream_usable() -> None:
    source = Source()
    stream = BridgedStream(source)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(anext(stream), timeout=0.01)

    assert stream.state is StreamState.ACTIVE
    source.push("later")
    assert await anext(stream) == "later"
    await stream.aclose()
    assert source.teardowns == 1


@pytest.mark.asyncio
async def test_failing_listener_fails_only_its_stream() -> None:
    target = InMemoryEventTarget()

    def broken_setup(push, stop):
        def on_event(event: PubSubEvent) -> None:
            raise ValueError("cannot decode")

        registration = target.register("feed", Listener(on_event, stop))
        return lambda: target.unregister(registration)

    def healthy_setup(push, stop):
        registration = target.register("feed", Listener(lambda event: push(event.payload), stop))
        return lambda: target.unregister(registration)

    broken = BridgedStream(broken_setup)
    healthy = BridgedStream(healthy_setup)
    broken_pending = await activate(broken)
    healthy_pending = await activate(healthy)
    assert target.listener_count("feed") == 2

    target.dispatch(PubSubEvent("feed", "payload"))

    with pytest.raises(ListenerError) as excinfo:
        await broken_pending
    assert isinstance(excinfo.value.__cause__, ValueError)
    assert await healthy_pending == "payload"
    assert target.listener_count("feed") == 1
    await healthy.aclose()
    assert target.listener_count("feed") == 0
