"""Event target: topic-keyed listener registry with synchronous dispatch."""
from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .errors import ListenerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PubSubEvent:
    """Simple event envelope."""

    topic: str
    payload: Any


@dataclass(frozen=True, slots=True)
class Registration:
    """Handle returned by ``register``; pass it back to ``unregister``."""

    topic: str
    token: int


@dataclass(slots=True, eq=False)
class Listener:
    """Callback bound to one subscriber.

    Calling the listener delivers an event. ``complete`` ends the subscriber's
    stream, either normally or with ``error``.
    """

    on_event: Callable[[PubSubEvent], None]
    on_complete: Callable[[BaseException | None], None]

    def __call__(self, event: PubSubEvent) -> None:
        self.on_event(event)

    def complete(self, error: BaseException | None = None) -> None:
        self.on_complete(error)


@runtime_checkable
class PubSubEventTarget(Protocol):
    """Capability set every event target provides."""

    def register(self, topic: str, callback: Callable[[PubSubEvent], None]) -> Registration:
        ...

    def unregister(self, registration: Registration) -> None:
        ...

    def dispatch(self, event: PubSubEvent) -> None:
        ...


class InMemoryEventTarget:
    """In-process event target with per-topic listener lists."""

    def __init__(self) -> None:
        self._listeners: dict[str, dict[int, Callable[[PubSubEvent], None]]] = {}
        self._tokens = itertools.count(1)

    def register(self, topic: str, callback: Callable[[PubSubEvent], None]) -> Registration:
        token = next(self._tokens)
        self._listeners.setdefault(topic, {})[token] = callback
        return Registration(topic, token)

    def unregister(self, registration: Registration) -> None:
        callbacks = self._listeners.get(registration.topic)
        if callbacks is None:
            return
        callbacks.pop(registration.token, None)
        if not callbacks:
            del self._listeners[registration.topic]

    def dispatch(self, event: PubSubEvent) -> None:
        """Invoke the topic's listeners in registration order.

        The pass runs over a snapshot: listeners added meanwhile wait for the
        next dispatch, listeners removed before their turn are skipped. A
        failing listener is reported to its own subscriber and the pass goes on.
        """

        snapshot = list(self._listeners.get(event.topic, {}).items())
        for token, callback in snapshot:
            current = self._listeners.get(event.topic)
            if current is None or token not in current:
                continue
            try:
                callback(event)
            except Exception as exc:
                self._report(event.topic, callback, exc)

    def complete(self, topic: str, error: BaseException | None = None) -> None:
        """Signal upstream completion to every subscriber of ``topic``."""

        for callback in list(self._listeners.get(topic, {}).values()):
            if isinstance(callback, Listener):
                callback.complete(error)

    def listener_count(self, topic: str | None = None) -> int:
        if topic is None:
            return sum(len(callbacks) for callbacks in self._listeners.values())
        return len(self._listeners.get(topic, {}))

    @staticmethod
    def _report(topic: str, callback: Callable[[PubSubEvent], None], exc: Exception) -> None:
        error = ListenerError(topic, exc)
        error.__cause__ = exc
        if isinstance(callback, Listener):
            callback.complete(error)
            return
        logger.exception("Listener for topic %r raised during dispatch", topic, exc_info=exc)
