"""Unit tests for BasePlugin."""

import pytest

from cadence.errors import RuntimeStateError
from cadence.runtime import BasePlugin
from cadence.types import PluginLifecycle


class Counter(BasePlugin):
    name = "counter"
    default_config = {"step": 1, "limits": {"max": 10}}

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.hooks = []
        self.seen = []

    async def on_init(self):
        self.hooks.append("init")
        self.on("counter:tick", self.seen.append)
        self.watch_state("counter.value", lambda v: self.hooks.append(("watch", v)))

    async def on_start(self):
        self.hooks.append("start")

    async def on_stop(self):
        self.hooks.append("stop")

    async def on_destroy(self):
        self.hooks.append("destroy")


class TestConstruction:
    def test_name_required(self):
        with pytest.raises(ValueError):
            BasePlugin()

    def test_name_override(self):
        assert Counter(name="other").name == "other"

    def test_default_config_not_shared(self):
        a, b = Counter(), Counter()
        a.config["limits"]["max"] = 99
        assert b.config["limits"]["max"] == 10

    def test_config_merges_over_defaults(self):
        plugin = Counter(config={"step": 5})
        assert plugin.get_config("step") == 5
        assert plugin.get_config("limits.max") == 10
        assert plugin.get_config("missing", "d") == "d"


class TestLifecycle:
    async def test_full_lifecycle_through_runtime(self, runtime):
        plugin = Counter()
        await runtime.register_plugin(plugin, priority=100, config={"step": 3})
        await runtime.init()
        await runtime.start()
        assert plugin.is_initialized and plugin.is_running
        assert plugin.get_config("step") == 3

        await runtime.stop()
        await runtime.destroy()
        assert plugin.hooks == ["init", "start", "stop", "destroy"]
        assert plugin.runtime is None
        assert runtime.plugin_state("counter") is PluginLifecycle.DESTROYED

    async def test_start_before_init(self):
        with pytest.raises(RuntimeStateError):
            await Counter().start()

    async def test_helpers_before_init(self):
        plugin = Counter()
        with pytest.raises(RuntimeStateError):
            plugin.get_state("a")
        with pytest.raises(RuntimeStateError):
            await plugin.emit("x")

    async def test_double_init_ignored(self, runtime):
        plugin = Counter()
        await plugin.init(runtime)
        await plugin.init(runtime)
        assert plugin.hooks == ["init"]

    async def test_stop_when_not_running_is_noop(self, runtime):
        plugin = Counter()
        await plugin.init(runtime)
        await plugin.stop()
        assert "stop" not in plugin.hooks


class TestHelpers:
    async def test_emit_adds_source(self, runtime):
        plugin = Counter()
        await plugin.init(runtime)
        received = []
        runtime.event_bus.subscribe("counter:done", received.append)
        await plugin.emit("counter:done", {"n": 1})
        assert received[0].payload == {"n": 1, "source": "counter"}
        assert received[0].source == "counter"

    async def test_state_helpers(self, runtime):
        plugin = Counter()
        await plugin.init(runtime)
        await plugin.set_state("counter.value", 4)
        assert plugin.get_state("counter.value") == 4
        assert plugin.hooks[-1] == ("watch", 4)

        await plugin.set_plugin_state("ticks", 2)
        assert plugin.get_plugin_state("ticks") == 2
        assert runtime.state.get("plugins.counter.ticks") == 2

    async def test_destroy_releases_subscriptions_and_watchers(self, runtime):
        plugin = Counter()
        await plugin.init(runtime)
        bus, store = runtime.event_bus, runtime.state
        assert bus.listener_count("counter:tick") == 1
        assert store.watcher_count == 1

        await plugin.destroy()
        assert bus.listener_count("counter:tick") == 0
        assert store.watcher_count == 0
        await bus.publish("counter:tick")
        assert plugin.seen == []


class Flaky(BasePlugin):
    name = "flaky"

    def __init__(self):
        super().__init__()
        self.init_failures = 1
        self.start_failures = 1

    async def on_init(self):
        self.on("flaky:evt", lambda e: None)
        if self.init_failures:
            self.init_failures -= 1
            raise RuntimeError("init failed")

    async def on_start(self):
        if self.start_failures:
            self.start_failures -= 1
            raise RuntimeError("start failed")


class TestFailedHooks:
    async def test_failed_init_can_be_retried(self, runtime):
        plugin = Flaky()
        with pytest.raises(RuntimeError):
            await plugin.init(runtime)
        assert plugin.is_initialized is False
        assert runtime.event_bus.listener_count("flaky:evt") == 0

        await plugin.init(runtime)
        assert plugin.is_initialized is True
        assert runtime.event_bus.listener_count("flaky:evt") == 1

    async def test_failed_start_can_be_retried(self, runtime):
        plugin = Flaky()
        plugin.init_failures = 0
        await plugin.init(runtime)
        with pytest.raises(RuntimeError):
            await plugin.start()
        assert plugin.is_running is False

        await plugin.start()
        assert plugin.is_running is True
