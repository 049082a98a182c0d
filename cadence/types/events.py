"""Event types."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any


def now_ms() -> float:
    """Monotonic milliseconds, the timebase shared by events, actions and the classifier."""
    return time.monotonic() * 1000


@dataclass(frozen=True)
class Event:
    name: str
    payload: Any = None
    timestamp: float = field(default_factory=now_ms)
    source: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "source": self.source,
        }


Handler = Callable[[Event], Awaitable[None] | None]
Middleware = Callable[[Event], Event | None]
Unsubscribe = Callable[[], None]
