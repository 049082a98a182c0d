"""
Session history

Fixed-capacity ring buffer of user actions plus the windowed metrics the
cognitive classifier reads.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from typing import Any

from ..types import Action

logger = logging.getLogger(__name__)


@dataclass
class VelocitySample:
    velocity: float = 0.0
    acceleration: float = 0.0


@dataclass
class RecentError:
    type: str
    timestamp: float
    time_since_last: float = 0.0


@dataclass
class SessionMetrics:
    total: int = 0
    error_rate: float = 0.0
    average_duration: float = 0.0
    average_speed: float = 0.0
    action_variety: float = 0.0
    action_types: dict[str, int] = field(default_factory=dict)
    recent_errors: list[RecentError] = field(default_factory=list)
    velocity_profile: list[VelocitySample] = field(default_factory=list)
    time_window: float = 0.0

    @property
    def success_rate(self) -> float:
        return 1.0 - self.error_rate if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ErrorClusterReport:
    clusters: list[list[Action]] = field(default_factory=list)
    max_cluster_size: int = 0
    average_cluster_size: float = 0.0
    total_clusters: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "clusters": [[a.to_dict() for a in cluster] for cluster in self.clusters],
            "max_cluster_size": self.max_cluster_size,
            "average_cluster_size": self.average_cluster_size,
            "total_clusters": self.total_clusters,
        }


def compute_metrics(actions: Sequence[Action]) -> SessionMetrics:
    """Metrics over ``actions``, which must be in chronological order."""
    total = len(actions)
    if total == 0:
        return SessionMetrics()

    errors = [a for a in actions if not a.success]
    action_types = dict(Counter(a.type for a in actions))

    recent_errors: list[RecentError] = []
    for i, err in enumerate(errors):
        gap = err.timestamp - errors[i - 1].timestamp if i else 0.0
        recent_errors.append(RecentError(err.type, err.timestamp, gap))

    return SessionMetrics(
        total=total,
        error_rate=len(errors) / total,
        average_duration=sum(a.duration_ms for a in actions) / total,
        average_speed=sum(a.speed for a in actions) / total,
        # Distinct types over total actions; a diversity ratio, not Shannon entropy.
        action_variety=len(action_types) / total,
        action_types=action_types,
        recent_errors=recent_errors,
        velocity_profile=velocity_profile(actions),
        time_window=actions[-1].timestamp - actions[0].timestamp if total > 1 else 0.0,
    )


def velocity_profile(actions: Sequence[Action]) -> list[VelocitySample]:
    """
    Per-action velocity (displacement over the time since the previous action)
    and its finite-difference acceleration against the previous action's own
    velocity. The first sample is all zeros.
    """
    profile: list[VelocitySample] = []
    for i, action in enumerate(actions):
        if i == 0:
            profile.append(VelocitySample())
            continue
        prev = actions[i - 1]
        dt = action.timestamp - prev.timestamp
        if dt <= 0:
            profile.append(VelocitySample())
            continue
        # the first pair has no earlier gap, so it reuses its own
        prev_dt = prev.timestamp - actions[i - 2].timestamp if i > 1 else dt
        prev_velocity = prev.distance / prev_dt if prev_dt > 0 else 0.0
        velocity = action.distance / dt
        profile.append(VelocitySample(velocity, (velocity - prev_velocity) / dt))
    return profile


def error_clusters(actions: Sequence[Action], time_window_ms: float = 5000) -> ErrorClusterReport:
    """
    Group consecutive failures whose gap is at most ``time_window_ms``.

    Successes between two failures do not split a cluster; only the gap does.
    Single isolated failures are not reported.
    """
    errors = [a for a in actions if not a.success]
    if not errors:
        return ErrorClusterReport()

    clusters: list[list[Action]] = []
    current = [errors[0]]
    for prev, err in zip(errors, errors[1:]):
        if err.timestamp - prev.timestamp <= time_window_ms:
            current.append(err)
        else:
            if len(current) > 1:
                clusters.append(current)
            current = [err]
    if len(current) > 1:
        clusters.append(current)

    sizes = [len(c) for c in clusters]
    return ErrorClusterReport(
        clusters=clusters,
        max_cluster_size=max(sizes, default=0),
        average_cluster_size=sum(sizes) / len(sizes) if sizes else 0.0,
        total_clusters=len(clusters),
    )


class SessionHistory:
    """Ring buffer of the most recent ``max_size`` actions."""

    def __init__(self, max_size: int = 100) -> None:
        if max_size < 1:
            raise ValueError("SessionHistory max_size must be >= 1")
        self.max_size = max_size
        self._buffer: list[Action] = []
        self._write_index = 0
        self._total_actions = 0

    def add(self, action: Action | Mapping[str, Any]) -> Action | None:
        """
        Append an action, overwriting the oldest when full.

        Mappings are normalised (missing duration, success, positions and metadata
        get defaults). Input without ``type`` or ``timestamp`` is logged and dropped.
        """
        if not isinstance(action, Action):
            if not isinstance(action, Mapping):
                logger.warning("Invalid action object: %r", action)
                return None
            try:
                action = Action.from_dict(action)
            except (TypeError, ValueError) as e:
                logger.warning("Invalid action object %r: %s", action, e)
                return None

        if len(self._buffer) < self.max_size:
            self._buffer.append(action)
        else:
            self._buffer[self._write_index] = action
        self._write_index = (self._write_index + 1) % self.max_size
        self._total_actions += 1
        return action

    def get_latest(self, count: int = 10) -> list[Action]:
        """The ``count`` most recent actions, newest first."""
        size = min(max(count, 0), len(self._buffer))
        return [
            self._buffer[(self._write_index - 1 - i) % self.max_size] for i in range(size)
        ]

    def get_all(self) -> list[Action]:
        """Every buffered action in chronological order."""
        if len(self._buffer) < self.max_size:
            return list(self._buffer)
        return self._buffer[self._write_index :] + self._buffer[: self._write_index]

    def get_window(self, size: int | None = None) -> list[Action]:
        """The last ``size`` actions (all when None), oldest first."""
        actions = self.get_all()
        if size is None:
            return actions
        return actions[-size:] if size > 0 else []

    def get_metrics(self, window: int | None = None) -> SessionMetrics:
        return compute_metrics(self.get_window(window))

    def get_error_clusters(self, time_window_ms: float = 5000) -> ErrorClusterReport:
        return error_clusters(self.get_all(), time_window_ms)

    def clear(self) -> None:
        self._buffer = []
        self._write_index = 0
        self._total_actions = 0

    def size(self) -> int:
        return len(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def get_stats(self) -> dict[str, Any]:
        return {
            "max_size": self.max_size,
            "current_size": len(self._buffer),
            "total_actions": self._total_actions,
            "is_full": len(self._buffer) >= self.max_size,
        }
