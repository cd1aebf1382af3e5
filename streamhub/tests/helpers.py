"""Shared helpers for driving streams from tests."""
from __future__ import annotations

import asyncio
from typing import Any

from ..core.events import InMemoryEventTarget, Registration

DONE = object()


async def next_value(stream: Any) -> Any:
    """Pull one value, returning ``DONE`` instead of raising at the end."""
    try:
        return await anext(stream)
    except StopAsyncIteration:
        return DONE


async def activate(stream: Any) -> asyncio.Task[Any]:
    """Start a pull so the stream registers its listener, and return it."""
    pending = asyncio.create_task(next_value(stream))
    await asyncio.sleep(0)
    return pending


async def take(stream: Any, count: int) -> list[Any]:
    return [await anext(stream) for _ in range(count)]


class CountingTarget(InMemoryEventTarget):
    """In-memory target that records every unregister call."""

    def __init__(self) -> None:
        super().__init__()
        self.unregistered: list[Registration] = []

    def unregister(self, registration: Registration) -> None:
        self.unregistered.append(registration)
        super().unregister(registration)
