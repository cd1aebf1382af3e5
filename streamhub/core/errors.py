"""Error types raised by the pub/sub engine."""
from __future__ import annotations


class PubSubError(Exception):
    """Base class for engine errors."""


class InvalidTopicError(PubSubError, ValueError):
    """Raised when a topic or topic id is not a usable key."""

    def __init__(self, topic: object, reason: str = "topic must be a non-empty string") -> None:
        self.topic = topic
        super().__init__(f"Invalid topic {topic!r}: {reason}")


class ListenerError(PubSubError):
    """A listener raised while an event was being dispatched."""

    def __init__(self, topic: str, error: BaseException) -> None:
        self.topic = topic
        super().__init__(f"Listener for {topic!r} failed: {error}")


class OperatorError(PubSubError):
    """A ``map``/``filter`` callback failed."""

    def __init__(self, operator: str, error: BaseException) -> None:
        self.operator = operator
        super().__init__(f"{operator} callback failed: {error}")


class SubscriptionOverflowError(PubSubError, OverflowError):
    """Buffer is full and the subscription rejects further values."""

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__(f"Subscription buffer exceeded capacity of {capacity}")
