"""Publish endpoint and server-sent events stream for topics."""
from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from sse_starlette.sse import EventSourceResponse

from ..core.errors import InvalidTopicError
from ..core.pubsub import PubSub, topic_key
from ..core.stream import BridgedStream, OverflowPolicy
from ..models.events import PublishRequest, PublishResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream"])


def _get_pubsub(request: Request) -> PubSub:
    return request.app.state.pubsub


def _listener_count(pubsub: PubSub, key: str) -> int | None:
    counter = getattr(pubsub.target, "listener_count", None)
    if counter is None:
        return None
    return counter(key)


async def sse_messages(topic: str, stream: BridgedStream[Any]) -> AsyncIterator[dict[str, str]]:
    """Render stream values as SSE messages, closing the stream when done."""

    async with stream:
        async for payload in stream:
            data = {"payload": jsonable_encoder(payload), "ts": datetime.now(UTC).isoformat()}
            yield {
                "event": topic,
                "data": json.dumps(data),
            }


@router.post("/publish/{topic}", response_model=PublishResponse)
async def publish_event(request: Request, topic: str, body: PublishRequest) -> PublishResponse:
    """Publish a payload to every current subscriber of the topic."""

    pubsub = _get_pubsub(request)
    try:
        key = topic_key(topic, body.id)
        pubsub.publish(topic, body.payload, id=body.id)
    except InvalidTopicError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return PublishResponse(topic=key, listeners=_listener_count(pubsub, key))


@router.get("/stream/{topic}")
async def stream_events(
    request: Request,
    topic: str,
    id: Optional[str] = Query(None),
    capacity: Optional[int] = Query(None, ge=1),
    overflow: Optional[OverflowPolicy] = Query(None),
) -> EventSourceResponse:
    """Subscribe to a topic as server-sent events."""

    pubsub = _get_pubsub(request)
    try:
        stream = pubsub.subscribe(topic, id, capacity=capacity, overflow=overflow)
    except (InvalidTopicError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    logger.debug("Opening event stream for %r", topic)
    return EventSourceResponse(sse_messages(topic, stream))
