"""Topic-based publish/subscribe over a pluggable event target."""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from ..util.config import PubSubConfig
from .errors import InvalidTopicError
from .events import InMemoryEventTarget, Listener, PubSubEvent, PubSubEventTarget
from .stream import BridgedStream, OverflowPolicy, Push, Stop

logger = logging.getLogger(__name__)

TopicId = str | int


def topic_key(topic: object, id: TopicId | None = None) -> str:
    """Validate ``topic`` (and optional ``id``) and return the routing key."""

    if not isinstance(topic, str) or not topic.strip():
        raise InvalidTopicError(topic)
    if id is None:
        return topic
    if isinstance(id, bool) or not isinstance(id, (str, int)):
        raise InvalidTopicError(topic, f"id must be a string or integer, got {id!r}")
    if isinstance(id, str) and not id.strip():
        raise InvalidTopicError(topic, "id must not be blank")
    return f"{topic}:{id}"


class PubSub:
    """Publishes payloads to topics and hands out one stream per subscriber."""

    def __init__(
        self,
        target: PubSubEventTarget | None = None,
        config: PubSubConfig | None = None,
    ) -> None:
        self._target = target if target is not None else InMemoryEventTarget()
        self._config = config if config is not None else PubSubConfig()

    @property
    def target(self) -> PubSubEventTarget:
        return self._target

    @property
    def config(self) -> PubSubConfig:
        return self._config

    def publish(self, topic: str, payload: Any, *, id: TopicId | None = None) -> None:
        key = topic_key(topic, id)
        logger.debug("Publishing to %r", key)
        self._target.dispatch(PubSubEvent(key, payload))

    def subscribe(
        self,
        topic: str,
        id: TopicId | None = None,
        *,
        capacity: int | None = None,
        overflow: OverflowPolicy | str | None = None,
    ) -> BridgedStream[Any]:
        key = topic_key(topic, id)
        return BridgedStream(
            self._listen(key),
            capacity=capacity if capacity is not None else self._config.capacity,
            overflow=OverflowPolicy(overflow) if overflow is not None else self._config.overflow,
            name=f"subscription {key!r}",
        )

    def _listen(self, key: str) -> Callable[[Push, Stop], Callable[[], None]]:
        def setup(push: Push, stop: Stop) -> Callable[[], None]:
            listener = Listener(lambda event: push(event.payload), stop)
            registration = self._target.register(key, listener)
            return lambda: self._target.unregister(registration)

        return setup


def create_pubsub(
    config: PubSubConfig | None = None,
    *,
    target: PubSubEventTarget | None = None,
) -> PubSub:
    """Build a ``PubSub``; omit ``target`` for an in-memory one."""

    return PubSub(target=target, config=config)
