"""State watchers: synchronous and trailing-edge debounced."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..events.breaker import detached_context

logger = logging.getLogger(__name__)

WatchCallback = Callable[[Any], Awaitable[None] | None]
Unwatch = Callable[[], None]


class WatchMode(StrEnum):
    SYNC = "sync"
    DEBOUNCED = "debounced"


@dataclass(eq=False)
class Watcher:
    path: str
    callback: WatchCallback
    mode: WatchMode = WatchMode.SYNC
    debounce_ms: float = 16.0
    active: bool = True
    _pending: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def notify(self, value: Any) -> None:
        try:
            result = self.callback(value)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Watcher error on %r", self.path)

    def schedule(self, read_value: Callable[[], Any]) -> None:
        """Restart the debounce window; the callback gets the value current when it fires."""
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(
            self._fire_after_window(read_value),
            name=f"cadence-watch:{self.path}",
            context=detached_context(),
        )

    async def _fire_after_window(self, read_value: Callable[[], Any]) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        self._pending = None
        if self.active:
            await self.notify(read_value())
