"""Cognitive state types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class CognitiveState(StrEnum):
    NEUTRAL = "neutral"
    FRUSTRATED = "frustrated"
    CONCENTRATED = "concentrated"
    EXPLORING = "exploring"
    LEARNING = "learning"


# Tie-break order when two signals score equally.
SIGNAL_PRIORITY: tuple[CognitiveState, ...] = (
    CognitiveState.FRUSTRATED,
    CognitiveState.CONCENTRATED,
    CognitiveState.LEARNING,
    CognitiveState.EXPLORING,
)


@dataclass
class Classification:
    state: CognitiveState
    previous: CognitiveState
    candidate: CognitiveState
    confidence: float
    signals: dict[str, float] = field(default_factory=dict)
    changed: bool = False
    held: bool = False  # candidate differed but the dwell time blocked the transition
    timestamp: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        return {
            "from": self.previous.value,
            "to": self.state.value,
            "signals": dict(self.signals),
            "confidence": self.confidence,
            "timestamp": self.timestamp,
        }
