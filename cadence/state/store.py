"""
Path-addressable state store

A single nested dict tree, written atomically and observed through the event bus
and per-path watchers. Every commit snapshots the previous tree into a bounded
history so it can be rolled back with ``time_travel``.
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from collections.abc import Mapping
from typing import Any

from ..config import StateStoreConfig
from ..errors import InvalidPath
from ..events import (
    STATE_CHANGED,
    STATE_RESET,
    STATE_RESTORED,
    STATE_TIMETRAVEL,
    EventBus,
    state_path_changed,
)
from .paths import (
    MISSING,
    changed_paths,
    deep_merge,
    get_path,
    is_kind_change,
    leaf_paths,
    parse_path,
    path_to_object,
    paths_overlap,
    validate_updates,
)
from .persistence import KeyValueStore, MemoryKeyValueStore
from .watchers import Unwatch, WatchCallback, Watcher, WatchMode

logger = logging.getLogger(__name__)

SOURCE = "StateStore"


class StateStore:
    """
    Hierarchical state with watchers and undo history.

    Reads are synchronous. Writes are coroutines because they publish change
    events and run watchers before returning.
    """

    def __init__(
        self,
        event_bus: EventBus,
        initial_state: Mapping[str, Any] | None = None,
        config: StateStoreConfig | None = None,
        *,
        kv_store: KeyValueStore | None = None,
    ) -> None:
        self.config = config or StateStoreConfig()
        self.event_bus = event_bus
        self.kv_store: KeyValueStore = kv_store if kv_store is not None else MemoryKeyValueStore()
        self._initial: dict[str, Any] = copy.deepcopy(dict(initial_state or {}))
        self._state: dict[str, Any] = copy.deepcopy(self._initial)
        self._history: deque[dict[str, Any]] = deque(maxlen=self.config.history_size)
        self._watchers: list[Watcher] = []
        self._disposed = False

    # ==================== reads ====================

    def get(self, path: str, default: Any = None) -> Any:
        """Value at ``path``, or ``default`` if any segment is absent or the path is malformed."""
        value = get_path(self._state, path, MISSING)
        if value is MISSING:
            return default
        return copy.deepcopy(value)

    def get_state(self) -> dict[str, Any]:
        """Deep, independent copy of the whole tree."""
        return copy.deepcopy(self._state)

    def get_history(self, limit: int = 10) -> list[dict[str, Any]]:
        """Previous snapshots, newest first."""
        if limit <= 0:
            return []
        snapshots = list(self._history)[-limit:]
        return [copy.deepcopy(s) for s in reversed(snapshots)]

    @property
    def history_size(self) -> int:
        return len(self._history)

    # ==================== writes ====================

    async def set_state(
        self,
        path_or_updates: str | Mapping[str, Any],
        value: Any = MISSING,
        *,
        merge: bool = True,
        silent: bool = False,
    ) -> None:
        """
        Apply an update and notify observers.

        ``set_state("a.b", 1)`` writes one path; ``set_state({"a": {"b": 1}, "c": 2})``
        writes several at once. Objects are deep-merged unless ``merge=False``, in
        which case the written values replace what was there.

        Raises:
            InvalidPath: malformed path or update keys
        """
        if isinstance(path_or_updates, str):
            if value is MISSING:
                raise TypeError("set_state(path, value): value is required with a path")
            segments = parse_path(path_or_updates)
            updates = path_to_object(segments, copy.deepcopy(value))
            if merge:
                new_state = deep_merge(self._state, updates)
            else:
                new_state = self._replace_at(segments, copy.deepcopy(value))
        elif isinstance(path_or_updates, Mapping):
            validate_updates(path_or_updates)
            updates = copy.deepcopy(dict(path_or_updates))
            if merge:
                new_state = deep_merge(self._state, updates)
            else:
                new_state = {**copy.deepcopy(self._state), **copy.deepcopy(updates)}
        else:
            raise InvalidPath(path_or_updates)

        self._warn_kind_changes(updates)
        written = list(leaf_paths(updates))
        await self._commit(new_state, updates, written, silent=silent)

    async def _commit(
        self,
        new_state: dict[str, Any],
        updates: Mapping[str, Any],
        written: list[str],
        *,
        silent: bool = False,
    ) -> list[str]:
        previous = self._state
        self._history.append(copy.deepcopy(previous))
        # Single assignment: observers never see a partially applied update.
        self._state = new_state
        changed = changed_paths(previous, new_state)

        if not silent:
            await self._emit_changes(previous, new_state, updates, changed)
        await self._run_watchers(set(written) | set(changed))
        return changed

    def _replace_at(self, segments: list[str], value: Any) -> dict[str, Any]:
        new_state = copy.deepcopy(self._state)
        node = new_state
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = value
        return new_state

    def _warn_kind_changes(self, updates: Mapping[str, Any]) -> None:
        for path in leaf_paths(updates):
            old = get_path(self._state, path, MISSING)
            new = get_path(updates, path, MISSING)
            if is_kind_change(old, new):
                logger.warning(
                    "State path %r changed type from %s to %s",
                    path,
                    type(old).__name__,
                    type(new).__name__,
                )

    async def _emit_changes(
        self,
        previous: dict[str, Any],
        current: dict[str, Any],
        updates: Mapping[str, Any],
        changed: list[str],
    ) -> None:
        # Payloads describe this commit even if a handler commits again meanwhile.
        await self.event_bus.publish(
            STATE_CHANGED,
            {
                "previous": copy.deepcopy(previous),
                "current": copy.deepcopy(current),
                "updates": copy.deepcopy(dict(updates)),
                "source": SOURCE,
            },
        )
        for path in changed:
            await self.event_bus.publish(
                state_path_changed(path),
                {
                    "path": path,
                    "previous": copy.deepcopy(get_path(previous, path)),
                    "current": copy.deepcopy(get_path(current, path)),
                    "source": SOURCE,
                },
            )

    # ==================== watchers ====================

    def watch(
        self,
        path: str,
        callback: WatchCallback,
        *,
        mode: WatchMode | str = WatchMode.SYNC,
        debounce_ms: float | None = None,
    ) -> Unwatch:
        """
        Call ``callback(new_value)`` whenever a commit touches ``path``, an ancestor
        or a descendant of it. Returns a function that revokes this registration.
        """
        parse_path(path)
        if not callable(callback):
            raise TypeError("StateStore.watch: callback must be callable")
        watcher = Watcher(
            path,
            callback,
            WatchMode(mode),
            self.config.default_debounce_ms if debounce_ms is None else debounce_ms,
        )
        self._watchers.append(watcher)

        def unwatch() -> None:
            watcher.active = False
            watcher.cancel()
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return unwatch

    async def _run_watchers(self, touched: set[str]) -> None:
        for watcher in list(self._watchers):
            if not watcher.active:
                continue
            if not any(paths_overlap(watcher.path, p) for p in touched):
                continue
            if watcher.mode is WatchMode.DEBOUNCED:
                watcher.schedule(lambda path=watcher.path: self.get(path))
            else:
                await watcher.notify(self.get(watcher.path))

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    # ==================== history ====================

    async def time_travel(self, steps_back: int = 1) -> bool:
        """
        Roll the tree back ``steps_back`` commits.

        The target snapshot and everything newer are dropped from history. The
        rollback is published and watched like any other commit.
        """
        if steps_back < 1 or steps_back > len(self._history):
            logger.warning(
                "time_travel: invalid steps_back=%s (history has %d)", steps_back, len(self._history)
            )
            return False

        target = self._history[-steps_back]
        for _ in range(steps_back):
            self._history.pop()

        previous = self._state
        current = copy.deepcopy(target)
        self._state = current
        changed = changed_paths(previous, current)

        await self._emit_changes(previous, current, current, changed)
        await self.event_bus.publish(
            STATE_TIMETRAVEL,
            {"steps_back": steps_back, "state": copy.deepcopy(current), "source": SOURCE},
        )
        await self._run_watchers(set(changed))
        return True

    async def reset(self, *, silent: bool = False) -> None:
        """Return to the initial tree. Pending debounced callbacks are left to fire."""
        previous = self._state
        self._state = copy.deepcopy(self._initial)
        if not silent:
            await self.event_bus.publish(
                STATE_RESET, {"previous_state": copy.deepcopy(previous), "source": SOURCE}
            )

    # ==================== persistence ====================

    async def persist(self, key: str = "cadence_state") -> bool:
        try:
            await self.kv_store.save(key, self.get_state())
        except (OSError, TypeError, ValueError):
            logger.exception("persist: failed to save state under %r", key)
            return False
        return True

    async def restore(self, key: str = "cadence_state") -> bool:
        """Replace the whole tree with the one saved under ``key``."""
        try:
            saved = await self.kv_store.get(key)
        except (OSError, ValueError):
            logger.exception("restore: failed to load state under %r", key)
            return False
        if saved is None:
            return False
        if not isinstance(saved, Mapping):
            logger.warning("restore: value under %r is not an object", key)
            return False

        try:
            validate_updates(saved)
        except InvalidPath:
            logger.warning("restore: value under %r has malformed keys", key)
            return False

        restored = copy.deepcopy(dict(saved))
        written = list(leaf_paths(restored))
        await self._commit(restored, restored, written)
        await self.event_bus.publish(STATE_RESTORED, {"key": key, "source": SOURCE})
        return True

    # ==================== lifecycle ====================

    def dispose(self) -> None:
        """Cancel pending debounced callbacks and drop every watcher."""
        for watcher in self._watchers:
            watcher.active = False
            watcher.cancel()
        self._watchers.clear()
        self._disposed = True

    @property
    def disposed(self) -> bool:
        return self._disposed
