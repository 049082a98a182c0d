"""Unit tests for the state store."""

import asyncio

import pytest

from cadence.config import StateStoreConfig
from cadence.errors import InvalidPath
from cadence.events import EventBus
from cadence.state import StateStore, WatchMode


class TestReads:
    def test_get_path(self, store):
        assert store.get("user.level") == 1
        assert store.get("user.missing", "x") == "x"
        assert store.get("bad..path", "x") == "x"

    def test_get_state_is_independent_copy(self, store):
        state = store.get_state()
        state["user"]["level"] = 99
        assert store.get("user.level") == 1

    def test_get_returns_copy_of_subtree(self, store):
        user = store.get("user")
        user["name"] = "mutated"
        assert store.get("user.name") == "ada"


class TestSetState:
    async def test_path_write_merges(self, store):
        await store.set_state("user.level", 5)
        assert store.get_state()["user"] == {"level": 5, "name": "ada"}

    async def test_object_write_is_deep_merge(self, store):
        await store.set_state({"user": {"level": 2}, "ui": {"font": 12}})
        assert store.get_state() == {
            "user": {"level": 2, "name": "ada"},
            "ui": {"theme": "dark", "font": 12},
        }

    async def test_merge_false_replaces_value_at_path(self, store):
        await store.set_state("user", {"level": 9}, merge=False)
        assert store.get("user") == {"level": 9}
        assert store.get("ui.theme") == "dark"

    async def test_sequence_equals_ordered_merge(self, bus):
        store = StateStore(bus)
        updates = [{"a": {"x": 1}}, {"a": {"y": 2}}, {"b": 3}, {"a": {"x": 4}}]
        for update in updates:
            await store.set_state(update)
        assert store.get_state() == {"a": {"x": 4, "y": 2}, "b": 3}

    async def test_caller_value_is_copied(self, store):
        tags = ["a"]
        await store.set_state("user.tags", tags)
        tags.append("b")
        assert store.get("user.tags") == ["a"]

    async def test_malformed_path_raises(self, store):
        with pytest.raises(InvalidPath):
            await store.set_state("user..level", 1)
        with pytest.raises(InvalidPath):
            await store.set_state({"a.b": 1})

    async def test_path_requires_value(self, store):
        with pytest.raises(TypeError):
            await store.set_state("user.level")

    async def test_kind_change_logs_warning(self, store, caplog):
        with caplog.at_level("WARNING"):
            await store.set_state("user", 3, merge=False)
        assert "changed type" in caplog.text


class TestEvents:
    async def test_change_events_order(self, bus, store):
        seen = []
        bus.subscribe("*", lambda e: seen.append(e.name))
        watcher_calls = []
        store.watch("user.level", lambda v: watcher_calls.append(seen.copy()))

        await store.set_state({"user": {"level": 3}, "ui": {"theme": "light"}})

        assert seen == ["state:changed", "state:ui.theme:changed", "state:user.level:changed"]
        # watchers run after every change event for the commit
        assert watcher_calls == [seen]

    async def test_state_changed_payload(self, bus, store):
        payloads = []
        bus.subscribe("state:changed", lambda e: payloads.append(e.payload))
        await store.set_state("user.level", 2)
        payload = payloads[0]
        assert payload["previous"]["user"]["level"] == 1
        assert payload["current"]["user"]["level"] == 2
        assert payload["updates"] == {"user": {"level": 2}}

    async def test_path_payload(self, bus, store):
        payloads = []
        bus.subscribe("state:user.level:changed", lambda e: payloads.append(e.payload))
        await store.set_state("user.level", 7)
        assert payloads == [
            {"path": "user.level", "previous": 1, "current": 7, "source": "StateStore"}
        ]

    async def test_observers_see_full_commit(self, bus, store):
        observed = []
        bus.subscribe("state:user.level:changed", lambda e: observed.append(store.get("ui.theme")))
        await store.set_state({"user": {"level": 2}, "ui": {"theme": "light"}})
        assert observed == ["light"]

    async def test_nested_write_does_not_rewrite_outer_payload(self, bus):
        store = StateStore(bus)
        path_events = []

        async def bump(event):
            if event.payload["current"].get("a") == 1:
                await store.set_state("a", 2)

        bus.subscribe("state:changed", bump)
        bus.subscribe("state:a:changed", lambda e: path_events.append((e.payload["previous"], e.payload["current"])))

        await store.set_state("a", 1)

        assert store.get("a") == 2
        # nested commit reports first, the outer one still reports what it wrote
        assert path_events == [(1, 2), (None, 1)]

    async def test_silent_suppresses_events_but_not_watchers(self, bus, store):
        events = []
        values = []
        bus.subscribe("*", events.append)
        store.watch("user.level", values.append)
        await store.set_state("user.level", 4, silent=True)
        assert events == []
        assert values == [4]


class TestWatchers:
    async def test_sync_watchers_in_registration_order(self, store):
        calls = []
        store.watch("user.level", lambda v: calls.append(("first", v)))
        store.watch("user", lambda v: calls.append(("second", v["level"])))
        store.watch("ui", lambda v: calls.append(("ui", v)))
        await store.set_state("user.level", 10)
        assert calls == [("first", 10), ("second", 10)]

    async def test_unwatch(self, store):
        calls = []
        unwatch = store.watch("user.level", calls.append)
        await store.set_state("user.level", 2)
        unwatch()
        await store.set_state("user.level", 3)
        assert calls == [2]
        assert store.watcher_count == 0

    async def test_watcher_error_isolated(self, store):
        calls = []

        def bad(v):
            raise RuntimeError("watcher")

        store.watch("user.level", bad)
        store.watch("user.level", calls.append)
        await store.set_state("user.level", 2)
        assert calls == [2]

    async def test_async_watcher_awaited(self, store):
        calls = []

        async def watcher(v):
            await asyncio.sleep(0)
            calls.append(v)

        store.watch("user.level", watcher)
        await store.set_state("user.level", 2)
        assert calls == [2]

    async def test_debounced_coalesces_to_latest(self, store):
        calls = []
        store.watch("user.level", calls.append, mode=WatchMode.DEBOUNCED, debounce_ms=30)
        for level in range(2, 7):
            await store.set_state("user.level", level)
            await asyncio.sleep(0.005)
        assert calls == []
        await asyncio.sleep(0.08)
        assert calls == [6]

    async def test_debounce_restarts_on_new_write(self, store):
        calls = []
        store.watch("user.level", calls.append, mode="debounced", debounce_ms=40)
        await store.set_state("user.level", 2)
        await asyncio.sleep(0.025)
        await store.set_state("user.level", 3)
        await asyncio.sleep(0.025)
        assert calls == []
        await asyncio.sleep(0.05)
        assert calls == [3]

    async def test_dispose_cancels_pending(self, store):
        calls = []
        store.watch("user.level", calls.append, mode=WatchMode.DEBOUNCED, debounce_ms=20)
        await store.set_state("user.level", 2)
        store.dispose()
        await asyncio.sleep(0.05)
        assert calls == []
        assert store.disposed


class TestHistory:
    async def test_history_newest_first_and_bounded(self):
        store = StateStore(EventBus(), {"n": 0}, StateStoreConfig(history_size=3))
        for n in range(1, 6):
            await store.set_state("n", n)
        assert [s["n"] for s in store.get_history()] == [4, 3, 2]
        assert store.history_size == 3

    async def test_time_travel_one_step(self, bus, store):
        await store.set_state("user.level", 2)
        await store.set_state("user.level", 3)
        assert await store.time_travel(1) is True
        assert store.get("user.level") == 2
        assert store.history_size == 1

    async def test_time_travel_truncates_future(self, bus, store):
        for level in (2, 3, 4):
            await store.set_state("user.level", level)
        assert await store.time_travel(2) is True
        assert store.get("user.level") == 2
        assert [s["user"]["level"] for s in store.get_history()] == [1]

    async def test_time_travel_is_observable(self, bus, store):
        names = []
        values = []
        bus.subscribe("*", lambda e: names.append(e.name))
        await store.set_state("user.level", 2)
        store.watch("user.level", values.append)
        names.clear()
        await store.time_travel()
        assert names == ["state:changed", "state:user.level:changed", "state:timetravel"]
        assert values == [1]

    async def test_time_travel_invalid_steps(self, store):
        assert await store.time_travel(1) is False
        await store.set_state("user.level", 2)
        assert await store.time_travel(0) is False
        assert await store.time_travel(5) is False
        assert store.get("user.level") == 2

    async def test_reset(self, bus, store):
        resets = []
        bus.subscribe("state:reset", resets.append)
        await store.set_state("user.level", 8)
        await store.reset()
        assert store.get("user.level") == 1
        assert resets[0].payload["previous_state"]["user"]["level"] == 8
        await store.reset(silent=True)
        assert len(resets) == 1
