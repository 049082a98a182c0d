"""Interaction action types."""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0

    @classmethod
    def coerce(cls, value: Any) -> Position:
        if isinstance(value, Position):
            return value
        if isinstance(value, Mapping):
            return cls(float(value.get("x", 0.0)), float(value.get("y", 0.0)))
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return cls(float(value[0]), float(value[1]))
        return cls()

    def distance_to(self, other: Position) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class Action:
    """One recorded user interaction. Immutable once created."""

    type: str
    timestamp: float
    duration_ms: float = 0.0
    success: bool = True
    start_pos: Position = field(default_factory=Position)
    end_pos: Position = field(default_factory=Position)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def __deepcopy__(self, memo: dict[int, Any]) -> Action:
        return replace(self, metadata=copy.deepcopy(dict(self.metadata), memo))

    @property
    def distance(self) -> float:
        return self.start_pos.distance_to(self.end_pos)

    @property
    def speed(self) -> float:
        """Displacement per millisecond, 0 for zero-duration actions."""
        return self.distance / self.duration_ms if self.duration_ms > 0 else 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Action:
        if not data.get("type") or data.get("timestamp") is None:
            raise ValueError("action requires 'type' and 'timestamp'")
        success = data.get("success")
        return cls(
            type=str(data["type"]),
            timestamp=float(data["timestamp"]),
            duration_ms=float(data.get("duration_ms") or 0.0),
            success=True if success is None else bool(success),
            start_pos=Position.coerce(data.get("start_pos")),
            end_pos=Position.coerce(data.get("end_pos")),
            metadata=data.get("metadata") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "timestamp": self.timestamp,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "start_pos": {"x": self.start_pos.x, "y": self.start_pos.y},
            "end_pos": {"x": self.end_pos.x, "y": self.end_pos.y},
            "metadata": dict(self.metadata),
        }
