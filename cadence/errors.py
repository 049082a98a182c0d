"""Structured error hierarchy for the runtime, event bus and state store."""

from __future__ import annotations

from typing import Any


class CadenceError(Exception):
    def __init__(self, code: str, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.cause = cause

    @classmethod
    def wrap(cls, err: Exception) -> CadenceError:
        if isinstance(err, CadenceError):
            return err
        return CadenceError("UNKNOWN", str(err), err)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "cause": repr(self.cause) if self.cause is not None else None,
        }


class RuntimeStateError(CadenceError):
    def __init__(self, message: str) -> None:
        super().__init__("RUNTIME_STATE", message)


# ==================== plugins ====================


class PluginError(CadenceError):
    def __init__(
        self, code: str, plugin_name: str, message: str, cause: Exception | None = None
    ) -> None:
        super().__init__(code, message, cause)
        self.plugin_name = plugin_name


class PluginValidationError(PluginError):
    def __init__(self, plugin_name: str, reason: str) -> None:
        super().__init__("PLUGIN_INVALID", plugin_name, f'Invalid plugin "{plugin_name}": {reason}')
        self.reason = reason


class DuplicateActivePlugin(PluginError):
    def __init__(self, plugin_name: str, state: str) -> None:
        super().__init__(
            "PLUGIN_DUPLICATE",
            plugin_name,
            f'Plugin "{plugin_name}" is already registered and {state}',
        )
        self.state = state


class PluginInitTimeout(PluginError):
    def __init__(self, plugin_name: str, timeout_ms: float) -> None:
        super().__init__(
            "PLUGIN_INIT_TIMEOUT",
            plugin_name,
            f'Plugin "{plugin_name}" init timed out after {timeout_ms:g}ms',
        )
        self.timeout_ms = timeout_ms


class PluginInitFailure(PluginError):
    def __init__(self, plugin_name: str, cause: Exception) -> None:
        super().__init__(
            "PLUGIN_INIT_FAILED", plugin_name, f'Plugin "{plugin_name}" init failed: {cause}', cause
        )


class PluginStartFailure(PluginError):
    def __init__(self, plugin_name: str, cause: Exception) -> None:
        super().__init__(
            "PLUGIN_START_FAILED", plugin_name, f'Plugin "{plugin_name}" start failed: {cause}', cause
        )


# ==================== events ====================


class HandlerException(CadenceError):
    def __init__(self, event_name: str, handler_name: str, cause: Exception) -> None:
        super().__init__(
            "HANDLER_EXCEPTION",
            f'Handler "{handler_name}" failed for "{event_name}": {cause}',
            cause,
        )
        self.event_name = event_name
        self.handler_name = handler_name


class CircuitBreakerTripped(CadenceError):
    def __init__(self, event_name: str, kind: str, chain: list[str] | None = None) -> None:
        super().__init__(
            "CIRCUIT_BREAKER", f'Circuit breaker tripped for "{event_name}" ({kind})'
        )
        self.event_name = event_name
        self.kind = kind
        self.chain = list(chain or [])


class EventWaitTimeout(CadenceError):
    def __init__(self, event_name: str, timeout_ms: float) -> None:
        super().__init__(
            "EVENT_WAIT_TIMEOUT", f'Timed out after {timeout_ms:g}ms waiting for "{event_name}"'
        )
        self.event_name = event_name
        self.timeout_ms = timeout_ms


# ==================== state ====================


class InvalidPath(CadenceError):
    def __init__(self, path: Any) -> None:
        super().__init__("INVALID_PATH", f"Malformed state path: {path!r}")
        self.path = path
