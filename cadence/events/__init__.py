"""
Event system: the bus, its circuit breaker and the reserved event names.
"""

from .breaker import CircuitBreaker, Trip, detached_context
from .bus import CIRCUIT_BREAKER, CORE_ERROR, WILDCARD, EventBus

# Lifecycle
INIT_START = "core:init:start"
INIT_COMPLETE = "core:init:complete"
DEFERRED_READY = "core:deferred:ready"
START_BEGIN = "core:start:begin"
START_COMPLETE = "core:start:complete"
STOP_BEGIN = "core:stop:begin"
STOP_COMPLETE = "core:stop:complete"
DESTROY_BEGIN = "core:destroy:begin"
DESTROY_COMPLETE = "core:destroy:complete"
PLUGIN_REGISTERED = "core:plugin:registered"
PLUGIN_INITIALIZED = "core:plugin:initialized"
PLUGIN_STARTED = "core:plugin:started"
PLUGIN_STOPPED = "core:plugin:stopped"
PLUGIN_DESTROYED = "core:plugin:destroyed"
PLUGIN_ERROR = "core:plugin:error"

# State
STATE_CHANGED = "state:changed"
STATE_RESET = "state:reset"
STATE_TIMETRAVEL = "state:timetravel"
STATE_RESTORED = "state:restored"


def state_path_changed(path: str) -> str:
    return f"state:{path}:changed"


# History / cognition
ACTION_RECORDED = "history:action:recorded"
COGNITIVE_STATE_CHANGE = "cognitive_state:change"

__all__ = [
    "EventBus",
    "CircuitBreaker",
    "Trip",
    "detached_context",
    "WILDCARD",
    "CORE_ERROR",
    "CIRCUIT_BREAKER",
    "INIT_START",
    "INIT_COMPLETE",
    "DEFERRED_READY",
    "START_BEGIN",
    "START_COMPLETE",
    "STOP_BEGIN",
    "STOP_COMPLETE",
    "DESTROY_BEGIN",
    "DESTROY_COMPLETE",
    "PLUGIN_REGISTERED",
    "PLUGIN_INITIALIZED",
    "PLUGIN_STARTED",
    "PLUGIN_STOPPED",
    "PLUGIN_DESTROYED",
    "PLUGIN_ERROR",
    "STATE_CHANGED",
    "STATE_RESET",
    "STATE_TIMETRAVEL",
    "STATE_RESTORED",
    "state_path_changed",
    "ACTION_RECORDED",
    "COGNITIVE_STATE_CHANGE",
]
