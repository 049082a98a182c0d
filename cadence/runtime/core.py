"""Plugin runtime: owns the event bus, state store and session history, and drives plugin lifecycles."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..config import RuntimeConfig
from ..errors import (
    CadenceError,
    DuplicateActivePlugin,
    PluginInitFailure,
    PluginInitTimeout,
    PluginStartFailure,
    PluginValidationError,
    RuntimeStateError,
)
from ..events import (
    ACTION_RECORDED,
    CORE_ERROR,
    DEFERRED_READY,
    DESTROY_BEGIN,
    DESTROY_COMPLETE,
    INIT_COMPLETE,
    INIT_START,
    PLUGIN_DESTROYED,
    PLUGIN_ERROR,
    PLUGIN_INITIALIZED,
    PLUGIN_REGISTERED,
    PLUGIN_STARTED,
    PLUGIN_STOPPED,
    START_BEGIN,
    START_COMPLETE,
    STOP_BEGIN,
    STOP_COMPLETE,
    EventBus,
    detached_context,
)
from ..infra.logging import get_logger
from ..intelligence.history import SessionHistory
from ..state import KeyValueStore, StateStore
from ..types import Action, PluginLifecycle, PluginRecord

logger = logging.getLogger(__name__)


@dataclass
class InitReport:
    """Outcome of the critical tier, returned by ``PluginRuntime.init``."""

    initialized: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    deferred: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "initialized": list(self.initialized),
            "failed": list(self.failed),
            "deferred": list(self.deferred),
            "degraded": self.degraded,
        }


class PluginRuntime:
    """
    Plugin lifecycle orchestrator.

    Plugins at or above ``critical_priority`` initialise concurrently and
    ``init()`` waits for all of them; the rest initialise one at a time in the
    background. ``start`` runs in descending priority, ``stop`` and ``destroy``
    in reverse.

    Usage:
        runtime = PluginRuntime(RuntimeConfig())
        await runtime.register_plugin(MyPlugin(), priority=100)
        report = await runtime.init()
        await runtime.start()
        ...
        await runtime.destroy()
    """

    def __init__(
        self,
        config: RuntimeConfig | None = None,
        *,
        kv_store: KeyValueStore | None = None,
        history: SessionHistory | None = None,
    ) -> None:
        self.config = config or RuntimeConfig()
        self.name = self.config.name
        bus_config = self.config.event_bus
        if self.config.debug_mode and not bus_config.debug_mode:
            bus_config = bus_config.model_copy(update={"debug_mode": True})

        self.event_bus = EventBus(bus_config, name=self.name)
        self.state = StateStore(
            self.event_bus, self.config.initial_state, self.config.state, kv_store=kv_store
        )
        self.history = history or SessionHistory(self.config.history_capacity)

        self._records: list[PluginRecord] = []
        self._sequence = 0
        self._started: list[PluginRecord] = []
        self._deferred_task: asyncio.Task[None] | None = None
        self._initialized = False
        self._running = False
        self._destroyed = False
        self._log = get_logger(__name__, runtime=self.name)

    # ==================== registry ====================

    async def register_plugin(
        self,
        plugin: Any,
        *,
        priority: int = 0,
        config: Mapping[str, Any] | None = None,
        init_timeout_ms: float | None = None,
    ) -> PluginRecord:
        """
        Add a plugin. A plugin with the same name is replaced only while it is
        still ``registered``; otherwise ``DuplicateActivePlugin`` is raised.
        """
        self._ensure_alive("register_plugin")
        name = getattr(plugin, "name", None)
        if not isinstance(name, str) or not name:
            raise PluginValidationError(repr(plugin), "plugin must have a non-empty name")
        if not callable(getattr(plugin, "init", None)):
            raise PluginValidationError(name, "plugin must implement init(runtime)")

        existing = self.get_record(name)
        if existing is not None:
            if existing.state is not PluginLifecycle.REGISTERED:
                raise DuplicateActivePlugin(name, existing.state.value)
            self._records.remove(existing)
            logger.warning("Replacing registered plugin %r", name)

        self._sequence += 1
        record = PluginRecord(
            plugin=plugin,
            priority=priority,
            sequence=self._sequence,
            config=dict(config or {}),
            init_timeout_ms=init_timeout_ms,
        )
        self._records.append(record)
        self._records.sort(key=lambda r: (-r.priority, r.sequence))

        self._log.debug("plugin_registered", plugin=name, priority=priority)
        await self._emit(PLUGIN_REGISTERED, {"name": name, "priority": priority})
        return record

    def get_record(self, name: str) -> PluginRecord | None:
        for record in self._records:
            if record.name == name:
                return record
        return None

    def get_plugin(self, name: str) -> Any | None:
        record = self.get_record(name)
        return record.plugin if record else None

    def plugin_state(self, name: str) -> PluginLifecycle | None:
        record = self.get_record(name)
        return record.state if record else None

    def plugin_config(self, name: str) -> dict[str, Any]:
        record = self.get_record(name)
        return dict(record.config) if record else {}

    @property
    def plugins(self) -> list[str]:
        """Plugin names in priority order."""
        return [r.name for r in self._records]

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def running(self) -> bool:
        return self._running

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # ==================== init ====================

    async def init(self) -> InitReport:
        """
        Initialise the critical tier concurrently and schedule the deferred tier.

        Returns once every critical plugin has initialised or failed. Failures
        are isolated and reported in the returned ``InitReport``.
        """
        self._ensure_alive("init")
        if self._initialized:
            raise RuntimeStateError("PluginRuntime.init() called twice")
        self._initialized = True

        await self._emit(INIT_START, {})
        critical = [r for r in self._records if r.priority >= self.config.critical_priority]
        deferred = [r for r in self._records if r.priority < self.config.critical_priority]
        self._log.info(
            "init_start", critical=[r.name for r in critical], deferred=[r.name for r in deferred]
        )

        results = await asyncio.gather(*(self._init_plugin(r) for r in critical))
        report = InitReport(
            initialized=[r.name for r, ok in zip(critical, results) if ok],
            failed=[r.name for r, ok in zip(critical, results) if not ok],
            deferred=[r.name for r in deferred],
        )
        if report.degraded:
            self._log.warning("init_degraded", failed=report.failed)

        await self._emit(INIT_COMPLETE, report.to_dict())

        self._deferred_task = asyncio.get_running_loop().create_task(
            self._init_deferred(deferred),
            name=f"{self.name}-deferred-init",
            context=detached_context(),
        )

        if self.config.auto_start:
            await self.start()
        return report

    async def _init_plugin(self, record: PluginRecord) -> bool:
        record.state = PluginLifecycle.INITIALIZING
        timeout_ms = record.init_timeout_ms
        try:
            result = record.plugin.init(self)
            if inspect.isawaitable(result):
                if timeout_ms is None:
                    await result
                else:
                    await self._await_with_deadline(record, result, timeout_ms)
        except PluginInitTimeout as e:
            await self._plugin_failed(record, "init", e)
            return False
        except Exception as e:
            await self._plugin_failed(record, "init", PluginInitFailure(record.name, e))
            return False

        record.state = PluginLifecycle.INITIALIZED
        await self._emit(PLUGIN_INITIALIZED, {"name": record.name, "priority": record.priority})
        return True

    async def _await_with_deadline(self, record: PluginRecord, awaitable: Any, timeout_ms: float) -> None:
        """Only the deadline maps to PluginInitTimeout; errors raised by the hook pass through."""
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise
        if not done:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            raise PluginInitTimeout(record.name, timeout_ms)
        task.result()

    async def _init_deferred(self, records: list[PluginRecord]) -> None:
        initialized: list[str] = []
        failed: list[str] = []
        for record in records:
            if await self._init_plugin(record):
                initialized.append(record.name)
            else:
                failed.append(record.name)
        self._log.info("deferred_ready", initialized=initialized, failed=failed)
        await self._emit(DEFERRED_READY, {"initialized": initialized, "failed": failed})

    async def wait_deferred(self) -> None:
        """Wait for the background deferred tier to finish."""
        task = self._deferred_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    # ==================== start / stop ====================

    async def start(self) -> None:
        """
        Start every initialised plugin in descending priority.

        Waits for the deferred tier first. The first failing start hook aborts
        with ``PluginStartFailure``; plugins already started stay running and
        a later ``start()`` starts the remaining ones.
        """
        self._ensure_alive("start")
        if not self._initialized:
            raise RuntimeStateError("PluginRuntime.start() called before init()")
        if self._running:
            logger.warning("PluginRuntime.start() called while already running")
            return

        await self._emit(START_BEGIN, {})
        await self.wait_deferred()

        for record in self._records:
            if record.state not in (PluginLifecycle.INITIALIZED, PluginLifecycle.STOPPED):
                continue
            record.state = PluginLifecycle.STARTING
            try:
                await self._call_hook(record, "start")
            except Exception as e:
                error = PluginStartFailure(record.name, e)
                await self._plugin_failed(record, "start", error)
                # plugins started so far stay running; a later start() resumes with the rest
                self._running = False
                raise error from e
            record.state = PluginLifecycle.RUNNING
            self._started.append(record)
            await self._emit(PLUGIN_STARTED, {"name": record.name, "priority": record.priority})

        self._running = True
        self._log.info("started", plugins=[r.name for r in self._started])
        await self._emit(START_COMPLETE, {"plugins": [r.name for r in self._started]})

    async def stop(self) -> None:
        """Stop started plugins in reverse start order. Hook failures are isolated."""
        await self._emit(STOP_BEGIN, {})
        for record in reversed(self._started):
            record.state = PluginLifecycle.STOPPING
            try:
                await self._call_hook(record, "stop")
            except Exception as e:
                await self._plugin_failed(record, "stop", CadenceError.wrap(e))
                continue
            record.state = PluginLifecycle.STOPPED
            await self._emit(PLUGIN_STOPPED, {"name": record.name})
        self._started.clear()
        self._running = False
        self._log.info("stopped")
        await self._emit(STOP_COMPLETE, {})

    # ==================== destroy ====================

    async def destroy(self) -> None:
        """
        Stop if running, destroy plugins in reverse registration order, then
        release the event bus and state store. Safe to call twice.
        """
        if self._destroyed:
            return
        await self._emit(DESTROY_BEGIN, {})
        if self._running or self._started:
            await self.stop()

        task = self._deferred_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        for record in sorted(self._records, key=lambda r: r.sequence, reverse=True):
            record.state = PluginLifecycle.DESTROYING
            try:
                await self._call_hook(record, "destroy")
            except Exception as e:
                await self._plugin_failed(record, "destroy", CadenceError.wrap(e))
                continue
            record.state = PluginLifecycle.DESTROYED
            await self._emit(PLUGIN_DESTROYED, {"name": record.name})

        await self._emit(DESTROY_COMPLETE, {})
        self._log.info("destroyed")
        self.event_bus.clear()
        self.state.dispose()
        self._destroyed = True

    # ==================== actions ====================

    async def record_action(self, action: Action | Mapping[str, Any]) -> Action | None:
        """Add an action to the session history and announce it."""
        self._ensure_alive("record_action")
        recorded = self.history.add(action)
        if recorded is None:
            return None
        await self._emit(
            ACTION_RECORDED, {"action": recorded, "history_size": self.history.size()}
        )
        return recorded

    # ==================== helpers ====================

    async def _call_hook(self, record: PluginRecord, hook: str) -> None:
        fn = getattr(record.plugin, hook, None)
        if fn is None:
            return
        result = fn()
        if inspect.isawaitable(result):
            await result

    async def _plugin_failed(self, record: PluginRecord, phase: str, error: CadenceError) -> None:
        record.state = PluginLifecycle.ERRORED
        record.error = error
        logger.error(
            "Plugin %r failed during %s: %s", record.name, phase, error, exc_info=error.cause or error
        )
        await self._emit(PLUGIN_ERROR, {"name": record.name, "phase": phase, "error": error})
        await self._emit(
            CORE_ERROR,
            {"message": str(error), "error": error, "plugin": record.name, "phase": phase},
        )

    async def _emit(self, event_name: str, payload: dict[str, Any]) -> bool:
        payload.setdefault("source", self.name)
        return await self.event_bus.publish(event_name, payload)

    def _ensure_alive(self, operation: str) -> None:
        if self._destroyed:
            raise RuntimeStateError(f"PluginRuntime.{operation}() called after destroy()")
