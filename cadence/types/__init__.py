"""Core type definitions, re-exported from sub-modules."""

from .actions import Action, Position
from .cognitive import SIGNAL_PRIORITY, Classification, CognitiveState
from .events import Event, Handler, Middleware, Unsubscribe, now_ms
from .plugins import Plugin, PluginLifecycle, PluginRecord

__all__ = [
    "Action", "Position",
    "Classification", "CognitiveState", "SIGNAL_PRIORITY",
    "Event", "Handler", "Middleware", "Unsubscribe", "now_ms",
    "Plugin", "PluginLifecycle", "PluginRecord",
]
