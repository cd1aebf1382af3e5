"""Push-to-pull bridge: a bounded, lazily started, cancellable async stream."""
from __future__ import annotations

import asyncio
import enum
import logging
import weakref
from collections import deque
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .errors import SubscriptionOverflowError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Push = Callable[[Any], None]
Stop = Callable[[BaseException | None], None]
Setup = Callable[[Push, Stop], Callable[[], None]]

DEFAULT_CAPACITY = 100


class StreamState(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"
    DRAINING = "draining"
    CLOSED = "closed"


class OverflowPolicy(str, enum.Enum):
    """What happens to a value that arrives while the buffer is full."""

    DROP_OLDEST = "drop_oldest"
    DROP_NEWEST = "drop_newest"
    REJECT = "reject"


class BridgedStream(Generic[T]):
    """Turns one push-style registration into a pull-style async iterator.

    ``setup(push, stop)`` is called on the first pull and must return a
    teardown callable, which runs exactly once when the stream stops
    accepting values. Values pushed while the buffer holds ``capacity``
    items are handled according to ``overflow``.

    The stream is single-use: iterating it again continues where the last
    pull left off, and only one pull may be pending at a time. Use
    ``async with`` (or ``aclose``) to release the registration when done;
    a stream dropped without closing releases it when garbage collected.
    """

    def __init__(
        self,
        setup: Setup,
        *,
        capacity: int = DEFAULT_CAPACITY,
        overflow: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
        name: str = "stream",
    ) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self._setup = setup
        self._finalizer: weakref.finalize | None = None
        self._buffer: deque[T] = deque()
        self._capacity = capacity
        self._overflow = OverflowPolicy(overflow)
        self._state = StreamState.IDLE
        self._error: BaseException | None = None
        self._waiter: asyncio.Future[None] | None = None
        self.name = name

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def overflow(self) -> OverflowPolicy:
        return self._overflow

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return (
            f"<BridgedStream {self.name!r} state={self._state.value} "
            f"buffered={len(self._buffer)}/{self._capacity}>"
        )

    def __aiter__(self) -> BridgedStream[T]:
        return self

    async def __anext__(self) -> T:
        if self._waiter is not None:
            raise RuntimeError(f"anext(): {self.name} is already being awaited")
        if self._state is StreamState.IDLE:
            self._start()
        while True:
            if self._buffer:
                value = self._buffer.popleft()
                if self._state is StreamState.DRAINING and not self._buffer:
                    self._state = StreamState.CLOSED
                return value
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            if self._state is not StreamState.ACTIVE:
                self._state = StreamState.CLOSED
                raise StopAsyncIteration
            self._waiter = asyncio.get_running_loop().create_future()
            try:
                await self._waiter
            finally:
                self._waiter = None

    async def __aenter__(self) -> BridgedStream[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.close()

    def close(self) -> None:
        """Release the registration and discard pending values. Idempotent."""

        self._error = None
        if self._state is StreamState.CLOSED:
            return
        self._state = StreamState.CLOSED
        self._buffer.clear()
        self._release()
        self._wake()
        logger.debug("%s closed", self.name)

    def push(self, value: T) -> None:
        """Offer a value; never blocks and never raises."""

        if self._state is not StreamState.ACTIVE:
            return
        if len(self._buffer) >= self._capacity:
            if self._overflow is OverflowPolicy.DROP_NEWEST:
                logger.debug("%s full, dropping newest value", self.name)
                return
            if self._overflow is OverflowPolicy.REJECT:
                logger.warning("%s exceeded capacity %d, closing", self.name, self._capacity)
                self.stop(SubscriptionOverflowError(self._capacity))
                return
            self._buffer.popleft()
            logger.debug("%s full, dropping oldest value", self.name)
        self._buffer.append(value)
        self._wake()

    def stop(self, error: BaseException | None = None) -> None:
        """End the stream from the producing side.

        Without ``error`` buffered values are still delivered. With one, the
        buffer is discarded and the next pull raises ``error``.
        """

        if self._state is StreamState.CLOSED:
            return
        if error is None and self._state is StreamState.DRAINING:
            return
        self._release()
        if error is None:
            # The next pull that finds the buffer empty closes the stream.
            self._state = StreamState.DRAINING
        else:
            self._buffer.clear()
            self._error = error
            self._state = StreamState.CLOSED
        self._wake()

    def _start(self) -> None:
        self._state = StreamState.ACTIVE
        logger.debug("%s active", self.name)
        push, stop = _weak_callbacks(self)
        try:
            teardown = self._setup(push, stop)
        except Exception:
            self._state = StreamState.CLOSED
            self._buffer.clear()
            raise
        # An abandoned stream still releases its registration once collected.
        self._finalizer = weakref.finalize(self, teardown)
        if self._state is not StreamState.ACTIVE:
            # setup already stopped the stream
            self._release()

    def _release(self) -> None:
        finalizer, self._finalizer = self._finalizer, None
        if finalizer is not None:
            finalizer()

    def _wake(self) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)


def _weak_callbacks(stream: BridgedStream[Any]) -> tuple[Push, Stop]:
    """push/stop that do not keep ``stream`` alive."""

    ref = weakref.ref(stream)

    def push(value: Any) -> None:
        target = ref()
        if target is not None:
            target.push(value)

    def stop(error: BaseException | None = None) -> None:
        target = ref()
        if target is not None:
            target.stop(error)

    return push, stop
