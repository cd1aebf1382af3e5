"""Pydantic models for the publish API."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class PublishRequest(BaseModel):
    payload: Any = None
    id: Optional[str] = Field(default=None, description="Narrows the topic to topic:id")


class PublishResponse(BaseModel):
    topic: str
    listeners: Optional[int] = None
