"""
Cognitive state classifier

Scores four independent signals in [0, 1] over the recent action window and
reports the strongest one, or ``neutral`` when nothing clears the confidence
floor. A minimum dwell time keeps the reported state from flickering.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Callable, Sequence
from typing import Any

from ..config import ClassifierConfig
from ..events import COGNITIVE_STATE_CHANGE, EventBus
from ..types import SIGNAL_PRIORITY, Action, Classification, CognitiveState, now_ms
from .history import SessionHistory, compute_metrics, error_clusters

logger = logging.getLogger(__name__)

SOURCE = "CognitiveClassifier"

RECOMMENDATIONS: dict[CognitiveState, list[str]] = {
    CognitiveState.FRUSTRATED: [
        "Slow down interface animations",
        "Increase gesture tolerance zones",
        "Show helpful hints",
        "Reduce complexity of available actions",
    ],
    CognitiveState.CONCENTRATED: [
        "Speed up animations",
        "Reduce dead zones for faster response",
        "Enable advanced gestures",
        "Minimize UI distractions",
    ],
    CognitiveState.EXPLORING: [
        "Show all available actions",
        "Provide contextual help",
        "Enable experimental features",
        "Allow more time for decisions",
    ],
    CognitiveState.LEARNING: [
        "Show progress indicators",
        "Provide positive feedback",
        "Gradually introduce new features",
        "Maintain consistent patterns",
    ],
    CognitiveState.NEUTRAL: [],
}


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _zero_signals() -> dict[str, float]:
    return {state.value: 0.0 for state in SIGNAL_PRIORITY}


class CognitiveClassifier:
    """
    Heuristic classifier over a ``SessionHistory``.

    Usage:
        classifier = CognitiveClassifier(history, event_bus)
        result = await classifier.evaluate()
        if result.changed:
            ...
    """

    def __init__(
        self,
        history: SessionHistory,
        event_bus: EventBus | None = None,
        config: ClassifierConfig | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.history = history
        self.event_bus = event_bus
        self.config = config or ClassifierConfig()
        self._clock = clock or now_ms

        self.current_state = CognitiveState.NEUTRAL
        self.previous_state = CognitiveState.NEUTRAL
        self.signals: dict[str, float] = _zero_signals()
        self.confidence = 1.0
        self._entered_at: float | None = None

    # ==================== signals ====================

    def compute_signals(self, actions: Sequence[Action] | None = None) -> dict[str, float]:
        """Signal scores for ``actions`` (chronological), defaulting to the recent window."""
        cfg = self.config
        window = list(actions) if actions is not None else self.history.get_window(cfg.window_size)
        if len(window) < cfg.min_actions:
            return _zero_signals()
        return {
            CognitiveState.FRUSTRATED.value: self._frustration(window),
            CognitiveState.CONCENTRATED.value: self._concentration(window),
            CognitiveState.LEARNING.value: self._learning(window),
            CognitiveState.EXPLORING.value: self._exploration(window),
        }

    def _frustration(self, window: list[Action]) -> float:
        cfg = self.config
        metrics = compute_metrics(window)
        clusters = error_clusters(window, cfg.frustration_time_window_ms)
        rate = min(1.0, metrics.error_rate / cfg.frustration_error_rate)
        density = min(1.0, clusters.max_cluster_size / cfg.frustration_cluster_size)
        return _clamp(0.6 * rate + 0.4 * density)

    def _concentration(self, window: list[Action]) -> float:
        cfg = self.config
        metrics = compute_metrics(window)

        accuracy = _clamp((metrics.success_rate - 0.5) / (cfg.concentration_success_rate - 0.5))
        if accuracy == 0.0:
            return 0.0

        if any(a.distance > 0 for a in window):
            speed = min(1.0, metrics.average_speed / cfg.concentration_speed)
        elif metrics.average_duration > 0:
            speed = min(1.0, cfg.concentration_duration_ms / metrics.average_duration)
        else:
            speed = 0.0

        durations = [a.duration_ms for a in window]
        mean = statistics.fmean(durations)
        if mean > 0:
            consistency = 1.0 - min(1.0, statistics.pstdev(durations) / mean)
        else:
            consistency = 0.0

        return _clamp(accuracy * (speed + consistency) / 2)

    def _exploration(self, window: list[Action]) -> float:
        cfg = self.config
        metrics = compute_metrics(window)
        gaps = [b.timestamp - a.timestamp for a, b in zip(window, window[1:])]
        pauses = sum(1 for gap in gaps if gap > cfg.exploration_pause_ms)
        pause_frequency = pauses / len(gaps) if gaps else 0.0

        variety = min(1.0, metrics.action_variety / cfg.exploration_variety_threshold)
        pausing = min(1.0, pause_frequency / cfg.exploration_pause_ratio)
        return _clamp(0.6 * variety + 0.4 * pausing)

    def _learning(self, window: list[Action]) -> float:
        cfg = self.config
        if len(window) < cfg.learning_min_actions:
            return 0.0
        mid = len(window) // 2
        baseline = compute_metrics(window[:mid]).success_rate
        recent = compute_metrics(window[mid:]).success_rate
        improvement = recent - baseline
        return _clamp(improvement / (2 * cfg.learning_improvement_threshold))

    def pick(self, signals: dict[str, float]) -> tuple[CognitiveState, float]:
        """Strongest signal, ties broken in priority order; neutral below the floor."""
        best = max(
            SIGNAL_PRIORITY,
            key=lambda s: (signals.get(s.value, 0.0), -SIGNAL_PRIORITY.index(s)),
        )
        top = signals.get(best.value, 0.0)
        if top < self.config.confidence_floor:
            return CognitiveState.NEUTRAL, round(1.0 - top, 6)
        return best, top

    # ==================== evaluation ====================

    async def evaluate(self, now_ms: float | None = None) -> Classification:
        """
        Recompute the signals and, if the winning state differs from the current
        one and the dwell time allows it, transition and publish the change.
        """
        now = self._clock() if now_ms is None else now_ms
        signals = self.compute_signals()
        candidate, confidence = self.pick(signals)
        self.signals = signals

        result = Classification(
            state=self.current_state,
            previous=self.current_state,
            candidate=candidate,
            confidence=confidence,
            signals=dict(signals),
            timestamp=now,
        )
        if candidate == self.current_state:
            self.confidence = confidence
            return result

        if self._dwelling(now):
            result.held = True
            logger.debug(
                "Holding %s: %s wanted after %.0fms (min dwell %.0fms)",
                self.current_state,
                candidate,
                now - (self._entered_at or now),
                self.config.min_dwell_ms,
            )
            return result

        self.confidence = confidence
        await self._transition(result, candidate, now)
        return result

    def _dwelling(self, now: float) -> bool:
        if self._entered_at is None:
            return False
        return now - self._entered_at < self.config.min_dwell_ms

    async def _transition(self, result: Classification, state: CognitiveState, now: float) -> None:
        old = self.current_state
        self.previous_state = old
        self.current_state = state
        self._entered_at = now

        result.previous = old
        result.state = state
        result.changed = True

        logger.info("Cognitive state transition: %s -> %s (confidence %.2f)", old, state, result.confidence)

        if self.event_bus is None:
            return
        payload = result.to_payload()
        payload["source"] = SOURCE
        await self.event_bus.publish(COGNITIVE_STATE_CHANGE, payload)
        await self.event_bus.publish(
            f"cognitive_state:{state.value}", {"from": old.value, "timestamp": now, "source": SOURCE}
        )

    async def force_state(self, state: CognitiveState | str) -> Classification:
        """Transition to ``state`` immediately, ignoring signals and dwell time."""
        target = CognitiveState(state)
        now = self._clock()
        result = Classification(
            state=self.current_state,
            previous=self.current_state,
            candidate=target,
            confidence=1.0,
            signals=dict(self.signals),
            timestamp=now,
        )
        logger.info("Forcing cognitive state: %s", target)
        self.confidence = 1.0
        await self._transition(result, target, now)
        return result

    async def reset(self) -> None:
        """Clear the history and signals and return to neutral."""
        self.history.clear()
        self.signals = _zero_signals()
        if self.current_state is not CognitiveState.NEUTRAL:
            await self.force_state(CognitiveState.NEUTRAL)
        self._entered_at = None

    # ==================== reporting ====================

    def recommendations(self, state: CognitiveState | None = None) -> list[str]:
        return list(RECOMMENDATIONS[state or self.current_state])

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self.current_state.value,
            "previous_state": self.previous_state.value,
            "confidence": self.confidence,
            "signals": dict(self.signals),
            "history": self.history.get_stats(),
        }

    def detailed_analysis(self) -> dict[str, Any]:
        return {
            "current_state": self.current_state.value,
            "signals": dict(self.signals),
            "metrics": self.history.get_metrics().to_dict(),
            "error_clusters": self.history.get_error_clusters(
                self.config.frustration_time_window_ms
            ).to_dict(),
            "recommendations": self.recommendations(),
        }
