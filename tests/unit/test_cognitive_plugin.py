"""Unit tests for CognitiveModelPlugin."""

import itertools

import pytest

from cadence.config import ClassifierConfig
from cadence.errors import RuntimeStateError
from cadence.intelligence import CognitiveModelPlugin


def ticking_clock(step=100):
    counter = itertools.count(0, step)
    return lambda: float(next(counter))


@pytest.fixture
async def plugin(runtime):
    plugin = CognitiveModelPlugin(clock=ticking_clock())
    await runtime.register_plugin(plugin, priority=100)
    await runtime.init()
    return plugin


class TestSetup:
    async def test_initial_state_written(self, plugin, runtime):
        assert runtime.state.get("user.cognitive_state") == "neutral"
        assert plugin.current_state()["state"] == "neutral"

    async def test_uses_runtime_history_and_config(self, plugin, runtime):
        assert plugin.classifier.history is runtime.history
        assert plugin.classifier.config == runtime.config.classifier

    async def test_state_path_from_registration_config(self, runtime):
        plugin = CognitiveModelPlugin()
        await runtime.register_plugin(plugin, priority=100, config={"state_path": "ui.mode"})
        await runtime.init()
        assert runtime.state.get("ui.mode") == "neutral"
        assert plugin.state_path == "ui.mode"

    async def test_requires_init(self):
        with pytest.raises(RuntimeStateError):
            await CognitiveModelPlugin().maybe_analyze()


class TestAnalysis:
    async def test_recorded_failures_become_frustrated(self, plugin, runtime):
        for t in range(6):
            await runtime.record_action({"type": "tap", "timestamp": t * 100, "success": False})
        assert runtime.state.get("user.cognitive_state") == "frustrated"

    async def test_rate_limited(self, runtime):
        plugin = CognitiveModelPlugin(ClassifierConfig(analysis_interval_ms=1000, min_dwell_ms=0))
        await runtime.register_plugin(plugin, priority=100)
        await runtime.init()
        assert await plugin.maybe_analyze(now=5000) is not None
        assert await plugin.maybe_analyze(now=5500) is None
        assert await plugin.maybe_analyze(now=6000) is not None

    async def test_force_state_and_reset(self, plugin, runtime):
        await plugin.force_state("concentrated")
        assert runtime.state.get("user.cognitive_state") == "concentrated"
        await plugin.reset()
        assert runtime.state.get("user.cognitive_state") == "neutral"
        assert runtime.history.size() == 0

    async def test_detailed_analysis(self, plugin, runtime):
        await runtime.record_action({"type": "tap", "timestamp": 1, "success": False})
        analysis = plugin.detailed_analysis()
        assert analysis["metrics"]["total"] == 1


class TestActionEvents:
    async def test_mapped_events_are_recorded(self, runtime):
        plugin = CognitiveModelPlugin(
            action_events={"navigation:error": {"type": "navigation_failed", "success": False}},
            clock=ticking_clock(),
        )
        await runtime.register_plugin(plugin, priority=100)
        await runtime.init()

        for _ in range(5):
            await runtime.event_bus.publish("navigation:error", {"duration_ms": 40, "route": "/x"})

        actions = runtime.history.get_all()
        assert [a.type for a in actions] == ["navigation_failed"] * 5
        assert all(a.success is False for a in actions)
        assert actions[0].duration_ms == 40
        assert actions[0].metadata["route"] == "/x"
        assert runtime.state.get("user.cognitive_state") == "frustrated"

    async def test_success_taken_from_payload_when_not_forced(self, runtime):
        plugin = CognitiveModelPlugin(action_events={"input:key": {}})
        await runtime.register_plugin(plugin, priority=100)
        await runtime.init()
        await runtime.event_bus.publish("input:key", {"success": False})
        action = runtime.history.get_latest(1)[0]
        assert action.type == "input:key"
        assert action.success is False

    async def test_destroy_unsubscribes(self, runtime):
        plugin = CognitiveModelPlugin(action_events={"input:key": {}})
        await runtime.register_plugin(plugin, priority=100)
        await runtime.init()
        await plugin.destroy()
        assert runtime.event_bus.listener_count("input:key") == 0
        assert plugin.classifier is None
