"""Plugin types."""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..runtime.core import PluginRuntime


class PluginLifecycle(StrEnum):
    REGISTERED = "registered"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DESTROYING = "destroying"
    DESTROYED = "destroyed"
    ERRORED = "errored"


@runtime_checkable
class Plugin(Protocol):
    """Required capability of every plugin. ``start``/``stop``/``destroy`` are optional."""

    name: str

    def init(self, runtime: PluginRuntime) -> Awaitable[None] | None: ...


@dataclass
class PluginRecord:
    plugin: Any
    priority: int
    sequence: int
    config: dict[str, Any] = field(default_factory=dict)
    init_timeout_ms: float | None = None
    state: PluginLifecycle = PluginLifecycle.REGISTERED
    error: Exception | None = None

    @property
    def name(self) -> str:
        return self.plugin.name
