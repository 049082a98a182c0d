"""
Pytest Configuration and Fixtures
"""

from typing import Any

import pytest

from cadence.config import ClassifierConfig, EventBusConfig, RuntimeConfig
from cadence.events import EventBus
from cadence.intelligence import SessionHistory
from cadence.runtime import PluginRuntime
from cadence.state import StateStore
from cadence.types import Action


@pytest.fixture
def bus() -> EventBus:
    """A bus with low breaker thresholds."""
    return EventBus(EventBusConfig(max_call_depth=10, max_chain_length=20))


@pytest.fixture
def store(bus: EventBus) -> StateStore:
    return StateStore(bus, {"user": {"level": 1, "name": "ada"}, "ui": {"theme": "dark"}})


@pytest.fixture
def history() -> SessionHistory:
    return SessionHistory(max_size=50)


@pytest.fixture
def classifier_config() -> ClassifierConfig:
    return ClassifierConfig(min_dwell_ms=0, analysis_interval_ms=0)


@pytest.fixture
async def runtime():
    rt = PluginRuntime(RuntimeConfig.for_testing())
    yield rt
    await rt.destroy()


@pytest.fixture
def make_action():
    """Factory: make_action(t, success=True, type="tap", duration=100, **fields)."""

    def _make(t: float, success: bool = True, type: str = "tap", duration: float = 100, **kw: Any) -> Action:
        return Action(type=type, timestamp=t, duration_ms=duration, success=success, **kw)

    return _make
