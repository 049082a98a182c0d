"""
Cadence - Behavioral-Adaptive Plugin Runtime
============================================

An in-process event bus, a path-addressable state store, a priority-tiered
plugin lifecycle orchestrator, and a session-history classifier that labels
the user's momentary cognitive state from a stream of actions.

## Map

- **Events** (`cadence.events`): `EventBus` with priorities, wildcard, middleware,
  history and a circuit breaker against runaway re-entrant dispatch.
- **State** (`cadence.state`): `StateStore` with dot-path reads, atomic merges,
  sync/debounced watchers, time travel and key-value persistence.
- **Runtime** (`cadence.runtime`): `PluginRuntime` (critical/deferred init tiers,
  ordered start/stop/destroy) and `BasePlugin`.
- **Intelligence** (`cadence.intelligence`): `SessionHistory`, `CognitiveClassifier`,
  `CognitiveModelPlugin`.

## Quick Start

```python
from cadence import CognitiveModelPlugin, PluginRuntime, RuntimeConfig

runtime = PluginRuntime(RuntimeConfig())
await runtime.register_plugin(CognitiveModelPlugin(), priority=100)
await runtime.init()
await runtime.start()

await runtime.record_action({"type": "swipe_left", "timestamp": 0, "success": False})
print(runtime.state.get("user.cognitive_state"))
```
"""

from .config import (
    ClassifierConfig,
    EventBusConfig,
    RuntimeConfig,
    StateStoreConfig,
)
from .errors import (
    CadenceError,
    CircuitBreakerTripped,
    DuplicateActivePlugin,
    EventWaitTimeout,
    HandlerException,
    InvalidPath,
    PluginError,
    PluginInitFailure,
    PluginInitTimeout,
    PluginStartFailure,
    PluginValidationError,
    RuntimeStateError,
)
from .events import EventBus
from .infra.logging import configure_logging, get_logger
from .intelligence import CognitiveClassifier, CognitiveModelPlugin, SessionHistory
from .runtime import BasePlugin, InitReport, PluginRuntime
from .state import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore, StateStore, WatchMode
from .types import Action, CognitiveState, Event, PluginLifecycle, Position

__version__ = "0.1.0"

__all__ = [
    # config
    "RuntimeConfig",
    "EventBusConfig",
    "StateStoreConfig",
    "ClassifierConfig",
    # errors
    "CadenceError",
    "PluginError",
    "PluginValidationError",
    "DuplicateActivePlugin",
    "PluginInitTimeout",
    "PluginInitFailure",
    "PluginStartFailure",
    "HandlerException",
    "CircuitBreakerTripped",
    "EventWaitTimeout",
    "InvalidPath",
    "RuntimeStateError",
    # core
    "EventBus",
    "StateStore",
    "WatchMode",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
    "PluginRuntime",
    "InitReport",
    "BasePlugin",
    "SessionHistory",
    "CognitiveClassifier",
    "CognitiveModelPlugin",
    # types
    "Action",
    "Position",
    "Event",
    "CognitiveState",
    "PluginLifecycle",
    # logging
    "configure_logging",
    "get_logger",
]
