"""
Runtime: the plugin lifecycle orchestrator and the plugin base class.
"""

from .core import InitReport, PluginRuntime
from .plugin import BasePlugin

__all__ = ["PluginRuntime", "InitReport", "BasePlugin"]
