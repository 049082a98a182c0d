"""Named-channel publish/subscribe with priorities, middleware and loop protection."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import Counter, defaultdict, deque
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..config import EventBusConfig
from ..errors import CircuitBreakerTripped, EventWaitTimeout, HandlerException
from ..types import Event, Handler, Middleware, Unsubscribe, now_ms
from .breaker import CircuitBreaker, Trip

logger = logging.getLogger(__name__)

WILDCARD = "*"
CORE_ERROR = "core:error"
CIRCUIT_BREAKER = "system:circuit-breaker"


@dataclass
class _Subscription:
    event_name: str
    handler: Handler
    priority: int
    sequence: int
    once: bool = False
    active: bool = True

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", None) or repr(self.handler)


class EventBus:
    """
    Event bus with priority ordering, wildcard listeners and a circuit breaker.

    Handlers may be plain functions or coroutine functions; each one runs to
    completion before the next. Name-specific handlers run in descending priority
    (ties keep registration order), then ``"*"`` handlers.
    """

    def __init__(self, config: EventBusConfig | None = None, *, name: str = "EventBus") -> None:
        self.config = config or EventBusConfig()
        self.name = name
        self._listeners: dict[str, list[_Subscription]] = defaultdict(list)
        self._wildcard: list[_Subscription] = []
        self._middleware: list[Middleware] = []
        self._history: deque[Event] = deque(maxlen=self.config.history_size)
        self._sequence = 0
        self._total_events = 0
        self._event_counts: Counter[str] = Counter()
        self.breaker = CircuitBreaker(
            id(self),
            max_call_depth=self.config.max_call_depth,
            max_chain_length=self.config.max_chain_length,
        )

    # ==================== subscription ====================

    def subscribe(
        self, event_name: str, handler: Handler, *, priority: int = 0, once: bool = False
    ) -> Unsubscribe:
        """
        Register ``handler`` for ``event_name`` (``"*"`` for every event).

        Returns a function that removes this registration; calling it twice is harmless.
        """
        if not callable(handler):
            raise TypeError("EventBus.subscribe: handler must be callable")

        self._sequence += 1
        sub = _Subscription(event_name, handler, priority, self._sequence, once)
        bucket = self._wildcard if event_name == WILDCARD else self._listeners[event_name]
        bucket.append(sub)
        bucket.sort(key=lambda s: (-s.priority, s.sequence))

        if self.config.debug_mode:
            logger.debug("Subscribed %s to %r (priority=%d)", sub.handler_name, event_name, priority)

        return lambda: self._remove(sub)

    on = subscribe

    def once(self, event_name: str, handler: Handler, *, priority: int = 0) -> Unsubscribe:
        return self.subscribe(event_name, handler, priority=priority, once=True)

    def off(self, event_name: str, handler: Handler | None = None) -> int:
        """Remove ``handler`` (or every handler when omitted) from ``event_name``."""
        bucket = self._wildcard if event_name == WILDCARD else self._listeners.get(event_name, [])
        removed = [s for s in bucket if handler is None or s.handler == handler]
        for sub in removed:
            self._remove(sub)
        return len(removed)

    def _remove(self, sub: _Subscription) -> None:
        sub.active = False
        bucket = self._wildcard if sub.event_name == WILDCARD else self._listeners.get(sub.event_name)
        if bucket and sub in bucket:
            bucket.remove(sub)
            if not bucket and sub.event_name != WILDCARD:
                self._listeners.pop(sub.event_name, None)

    def use(self, middleware: Middleware) -> None:
        """Add ``(event) -> event | None``; returning ``None`` cancels the dispatch."""
        if not callable(middleware):
            raise TypeError("EventBus.use: middleware must be callable")
        self._middleware.append(middleware)

    def listener_count(self, event_name: str | None = None) -> int:
        if event_name is None:
            return sum(len(b) for b in self._listeners.values()) + len(self._wildcard)
        if event_name == WILDCARD:
            return len(self._wildcard)
        return len(self._listeners.get(event_name, []))

    # ==================== dispatch ====================

    async def publish(self, event_name: str, payload: Any = None, *, source: str | None = None) -> bool:
        """
        Dispatch an event. Returns True if at least one handler completed.

        Handler exceptions are reported on ``core:error`` and never propagate.
        A dispatch refused by the circuit breaker returns False.
        """
        if self.config.circuit_breaker_enabled and event_name != CIRCUIT_BREAKER:
            trip = self.breaker.check(event_name)
            if trip is not None:
                await self._report_trip(trip)
                return False

        if source is None:
            source = payload.get("source") if isinstance(payload, Mapping) else None
        event = Event(event_name, payload, now_ms(), source or "unknown")

        processed = self._apply_middleware(event)
        if processed is None:
            if self.config.debug_mode:
                logger.debug("Event %r cancelled by middleware", event_name)
            return False

        self._total_events += 1
        self._event_counts[event_name] += 1
        self._history.append(processed)

        if self.config.debug_mode:
            logger.debug("Emit %r from %s", event_name, processed.source)

        subscriptions = list(self._listeners.get(event_name, ())) + list(self._wildcard)
        if not subscriptions:
            return False

        token = self.breaker.enter(event_name)
        called = 0
        try:
            for sub in subscriptions:
                if not sub.active:
                    continue
                if sub.once:
                    self._remove(sub)
                try:
                    result = sub.handler(processed)
                    if inspect.isawaitable(result):
                        await result
                    called += 1
                except Exception as exc:
                    await self._report_handler_error(processed, sub, exc)
        finally:
            self.breaker.exit(token)
        return called > 0

    emit = publish

    async def wait_once(self, event_name: str, timeout_ms: float | None = None) -> Event:
        """Resolve with the next ``event_name`` event; raise ``EventWaitTimeout`` on timeout."""
        future: asyncio.Future[Event] = asyncio.get_running_loop().create_future()

        def _resolve(event: Event) -> None:
            if not future.done():
                future.set_result(event)

        unsubscribe = self.once(event_name, _resolve)
        try:
            if timeout_ms is None:
                return await future
            return await asyncio.wait_for(future, timeout_ms / 1000)
        except TimeoutError:
            raise EventWaitTimeout(event_name, timeout_ms or 0) from None
        finally:
            unsubscribe()

    def _apply_middleware(self, event: Event) -> Event | None:
        processed = event
        for middleware in self._middleware:
            try:
                result = middleware(processed)
            except Exception:
                logger.exception("Middleware error for %r", event.name)
                continue
            if result is None:
                return None
            processed = result
        return processed

    async def _report_handler_error(self, event: Event, sub: _Subscription, exc: Exception) -> None:
        logger.error(
            "Error in handler %s for %r", sub.handler_name, event.name, exc_info=exc
        )
        if event.name == CORE_ERROR:
            return
        error = HandlerException(event.name, sub.handler_name, exc)
        await self.publish(
            CORE_ERROR,
            {
                "message": str(error),
                "error": error,
                "event_name": event.name,
                "handler": sub.handler_name,
                "source": self.name,
            },
        )

    async def _report_trip(self, trip: Trip) -> None:
        # A breaker handler that re-publishes the offending name must not trip again recursively.
        if self.breaker.in_dispatch(CIRCUIT_BREAKER):
            return
        payload: dict[str, Any] = {
            "event_name": trip.event_name,
            "type": trip.kind,
            "depth": trip.depth,
            "error": CircuitBreakerTripped(trip.event_name, trip.kind, trip.chain),
            "source": self.name,
        }
        if trip.kind == "cycle_detected":
            payload["cycle"] = trip.cycle
            payload["chain"] = list(trip.chain)
        await self.publish(CIRCUIT_BREAKER, payload)

    # ==================== history & stats ====================

    def history(self, event_name: str | None = None, limit: int = 50) -> list[Event]:
        """The last ``limit`` recorded events, oldest first, optionally for one name."""
        events = [e for e in self._history if event_name is None or e.name == event_name]
        return events[-limit:] if limit > 0 else []

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_events": self._total_events,
            "unique_events": len(self._event_counts),
            "top_events": [
                {"name": name, "count": count} for name, count in self._event_counts.most_common(10)
            ],
            "listeners": [
                {"name": name, "count": len(subs)} for name, subs in self._listeners.items()
            ],
            "wildcard_listeners": len(self._wildcard),
            "circuit_breaker_trips": self.breaker.trips,
        }

    def clear(self) -> None:
        """Remove every listener and middleware."""
        for bucket in [*self._listeners.values(), self._wildcard]:
            for sub in bucket:
                sub.active = False
        self._listeners.clear()
        self._wildcard.clear()
        self._middleware.clear()
        if self.config.debug_mode:
            logger.debug("All listeners cleared")

    def reset(self) -> None:
        """Forget history and statistics."""
        self._history.clear()
        self._total_events = 0
        self._event_counts.clear()
