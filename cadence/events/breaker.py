"""Loop protection for nested event dispatch."""

from __future__ import annotations

import contextvars
import logging
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

TripKind = Literal["max_depth_exceeded", "cycle_detected"]

# (bus id, event name) frames for every dispatch currently on this task's stack.
# Tasks spawned during dispatch copy the context, so each task sees its own chain.
_DISPATCH_STACK: ContextVar[tuple[tuple[int, str], ...]] = ContextVar(
    "cadence_dispatch_stack", default=()
)


@dataclass
class Trip:
    event_name: str
    kind: TripKind
    depth: int
    chain: list[str]

    @property
    def cycle(self) -> list[str]:
        if self.event_name not in self.chain:
            return []
        start = len(self.chain) - 1 - self.chain[::-1].index(self.event_name)
        return self.chain[start:]


class CircuitBreaker:
    """
    Tracks the chain of event names being dispatched for one bus.

    A name whose nested depth reaches ``max_call_depth``, or that reappears once the
    chain has grown to ``max_chain_length``, is refused. State lives in a context
    variable, so it unwinds with the dispatch stack and heals itself.
    """

    def __init__(self, owner_id: int, max_call_depth: int = 100, max_chain_length: int = 50) -> None:
        self._owner = owner_id
        self.max_call_depth = max_call_depth
        self.max_chain_length = max_chain_length
        self.trips = 0

    def chain(self) -> list[str]:
        return [name for owner, name in _DISPATCH_STACK.get() if owner == self._owner]

    def depth(self, event_name: str) -> int:
        return self.chain().count(event_name)

    def in_dispatch(self, event_name: str) -> bool:
        return event_name in self.chain()

    def check(self, event_name: str) -> Trip | None:
        chain = self.chain()
        depth = chain.count(event_name)
        if depth >= self.max_call_depth:
            self.trips += 1
            logger.error(
                "Circuit breaker: %r exceeded max call depth (%d)", event_name, self.max_call_depth
            )
            return Trip(event_name, "max_depth_exceeded", depth, chain)
        if depth and len(chain) >= self.max_chain_length:
            self.trips += 1
            logger.error("Circuit breaker: cycle on %r (chain length %d)", event_name, len(chain))
            return Trip(event_name, "cycle_detected", depth, chain)
        return None

    def enter(self, event_name: str) -> Token:
        return _DISPATCH_STACK.set(_DISPATCH_STACK.get() + ((self._owner, event_name),))

    @staticmethod
    def exit(token: Token) -> None:
        _DISPATCH_STACK.reset(token)


def detached_context() -> contextvars.Context:
    """A copy of the current context with an empty dispatch stack, for timer tasks."""
    ctx = contextvars.copy_context()
    ctx.run(_DISPATCH_STACK.set, ())
    return ctx
