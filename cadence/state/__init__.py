"""
State: the path-addressable store, its watchers and persistence collaborators.
"""

from .persistence import FileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .store import StateStore
from .watchers import Unwatch, WatchCallback, Watcher, WatchMode

__all__ = [
    "StateStore",
    "WatchMode",
    "Watcher",
    "WatchCallback",
    "Unwatch",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "FileKeyValueStore",
]
