"""Engine defaults and environment loading."""
from __future__ import annotations

import os
from dataclasses import dataclass

from ..core.stream import DEFAULT_CAPACITY, OverflowPolicy


@dataclass(slots=True)
class PubSubConfig:
    """Buffer defaults applied to every subscription."""

    capacity: int = DEFAULT_CAPACITY
    overflow: OverflowPolicy = OverflowPolicy.DROP_OLDEST

    def __post_init__(self) -> None:
        self.overflow = OverflowPolicy(self.overflow)
        self.validate()

    @classmethod
    def from_env(cls) -> "PubSubConfig":
        return cls(
            capacity=_env_int("STREAMHUB_BUFFER_CAPACITY", default=DEFAULT_CAPACITY),
            overflow=_env_policy("STREAMHUB_OVERFLOW_POLICY", default=OverflowPolicy.DROP_OLDEST),
        )

    def validate(self) -> None:
        if isinstance(self.capacity, bool) or not isinstance(self.capacity, int) or self.capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {self.capacity!r}")


def _env_int(name: str, *, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_policy(name: str, *, default: OverflowPolicy) -> OverflowPolicy:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return OverflowPolicy(raw.strip().lower())
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in OverflowPolicy)
        raise ValueError(f"{name} must be one of {choices}, got {raw!r}") from exc
