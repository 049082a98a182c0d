"""
Configuration models

Pydantic models for the event bus, state store, classifier and runtime.
Breaker thresholds are configurable per environment: tests want low limits,
production wants high ones (see ``RuntimeConfig.for_testing``).
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import Field

from cadence.config.base import CadenceBaseConfig


class EventBusConfig(CadenceBaseConfig):
    """Event bus configuration"""

    history_size: int = Field(100, ge=1, le=100_000, description="Ring buffer size for emitted events")
    circuit_breaker_enabled: bool = Field(True, description="Enable loop protection")
    max_call_depth: int = Field(100, ge=1, description="Max nested dispatches of one event name")
    max_chain_length: int = Field(50, ge=1, description="Chain length at which a repeated name is a cycle")
    debug_mode: bool = Field(False, description="Trace subscribe/emit at DEBUG level")


class StateStoreConfig(CadenceBaseConfig):
    """State store configuration"""

    history_size: int = Field(50, ge=1, le=10_000, description="Snapshots kept for time travel")
    default_debounce_ms: float = Field(16, ge=0, description="Window for debounced watchers")


class ClassifierConfig(CadenceBaseConfig):
    """Cognitive classifier configuration"""

    window_size: int = Field(20, ge=2, description="Recent actions considered per evaluation")
    min_actions: int = Field(5, ge=1, description="Below this the signals are all zero")
    confidence_floor: float = Field(0.5, ge=0.0, le=1.0, description="Top signal below this reports neutral")
    min_dwell_ms: float = Field(2000, ge=0, description="Minimum time in a state before leaving it")
    analysis_interval_ms: float = Field(500, ge=0, description="Rate limit for plugin-driven evaluation")

    frustration_error_rate: float = Field(0.4, gt=0.0, le=1.0)
    frustration_time_window_ms: float = Field(5000, gt=0)
    frustration_cluster_size: int = Field(3, ge=2)

    concentration_success_rate: float = Field(0.9, gt=0.5, le=1.0)
    concentration_speed: float = Field(
        0.001, gt=0.0, description="Displacement per ms that counts as fast"
    )
    concentration_duration_ms: float = Field(
        400, gt=0, description="Duration that counts as fast when actions carry no displacement"
    )

    exploration_variety_threshold: float = Field(0.6, gt=0.0, le=1.0)
    exploration_pause_ms: float = Field(1000, gt=0)
    exploration_pause_ratio: float = Field(0.3, gt=0.0, le=1.0)

    learning_min_actions: int = Field(10, ge=4)
    learning_improvement_threshold: float = Field(
        0.15, gt=0.0, le=1.0, description="Success-rate gain that scores 0.5"
    )


class RuntimeConfig(CadenceBaseConfig):
    """Plugin runtime configuration"""

    name: str = Field("cadence", description="Runtime name used in logs and event sources")
    debug_mode: bool = Field(False)
    auto_start: bool = Field(False, description="Call start() after init()")
    critical_priority: int = Field(100, description="Plugins at or above this priority are critical")
    history_capacity: int = Field(100, ge=1, description="Session history ring buffer size")
    initial_state: dict[str, Any] = Field(default_factory=dict)
    event_bus: EventBusConfig = Field(default_factory=lambda: EventBusConfig(history_size=200))
    state: StateStoreConfig = Field(default_factory=StateStoreConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)

    @classmethod
    def for_testing(cls, **overrides: Any) -> RuntimeConfig:
        """Low breaker thresholds and no dwell so tests stay fast and deterministic."""
        config = cls(
            event_bus=EventBusConfig(history_size=200, max_call_depth=10, max_chain_length=10),
            classifier=ClassifierConfig(min_dwell_ms=0, analysis_interval_ms=0),
        )
        return config.model_copy(update=overrides)

    @classmethod
    def for_production(cls, **overrides: Any) -> RuntimeConfig:
        return cls(**overrides)

    @classmethod
    def from_env(cls, prefix: str = "CADENCE_", environ: dict[str, str] | None = None) -> RuntimeConfig:
        env = os.environ if environ is None else environ
        config = cls()

        def _get(key: str) -> str | None:
            return env.get(f"{prefix}{key}")

        if (value := _get("DEBUG")) is not None:
            config.debug_mode = value.strip().lower() in {"1", "true", "yes", "on"}
            config.event_bus.debug_mode = config.debug_mode
        if (value := _get("MAX_CALL_DEPTH")) is not None:
            config.event_bus.max_call_depth = int(value)
        if (value := _get("MAX_CHAIN_LENGTH")) is not None:
            config.event_bus.max_chain_length = int(value)
        if (value := _get("HISTORY_CAPACITY")) is not None:
            config.history_capacity = int(value)
        if (value := _get("MIN_DWELL_MS")) is not None:
            config.classifier.min_dwell_ms = float(value)
        return config
