"""In-process topic pub/sub with backpressured async streams and operators."""
from __future__ import annotations

from .core.errors import (
    InvalidTopicError,
    ListenerError,
    OperatorError,
    PubSubError,
    SubscriptionOverflowError,
)
from .core.events import (
    InMemoryEventTarget,
    Listener,
    PubSubEvent,
    PubSubEventTarget,
    Registration,
)
from .core.pubsub import PubSub, create_pubsub
from .core.stream import BridgedStream, OverflowPolicy, StreamState
from .operators import filter, map
from .pipe import pipe
from .util.config import PubSubConfig

__all__ = [
    "BridgedStream",
    "InMemoryEventTarget",
    "InvalidTopicError",
    "Listener",
    "ListenerError",
    "OperatorError",
    "OverflowPolicy",
    "PubSub",
    "PubSubConfig",
    "PubSubError",
    "PubSubEvent",
    "PubSubEventTarget",
    "Registration",
    "StreamState",
    "SubscriptionOverflowError",
    "create_pubsub",
    "filter",
    "map",
    "pipe",
]
