"""Cognitive model plugin: feeds recorded actions to the classifier and mirrors its state into the store."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from ..config import ClassifierConfig
from ..events import ACTION_RECORDED
from ..runtime.plugin import BasePlugin
from ..types import Classification, CognitiveState, Event, now_ms
from .classifier import CognitiveClassifier

logger = logging.getLogger(__name__)


class CognitiveModelPlugin(BasePlugin):
    """
    Re-evaluates the classifier whenever the runtime records an action, at most
    once per ``analysis_interval_ms``, and writes the reported state to
    ``state_path`` (``user.cognitive_state`` by default).

    ``action_events`` maps bus events to actions, so input plugins can publish
    plain events instead of calling ``record_action``:

        CognitiveModelPlugin(action_events={
            "navigation:error": {"type": "navigation_failed", "success": False},
            "input:keyboard:keydown": {"type": "keyboard"},
        })
    """

    name = "cognitive_model"
    default_config = {"state_path": "user.cognitive_state", "action_events": {}}

    def __init__(
        self,
        classifier_config: ClassifierConfig | None = None,
        *,
        name: str | None = None,
        action_events: Mapping[str, Mapping[str, Any]] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        config: dict[str, Any] = {}
        if action_events is not None:
            config["action_events"] = {k: dict(v) for k, v in action_events.items()}
        super().__init__(name, config)
        self._classifier_config = classifier_config
        self._clock = clock or now_ms
        self._last_analysis: float | None = None
        self.classifier: CognitiveClassifier | None = None

    @property
    def state_path(self) -> str:
        return self.get_config("state_path", "user.cognitive_state")

    async def on_init(self) -> None:
        runtime = self.runtime
        assert runtime is not None
        config = self._classifier_config or runtime.config.classifier
        self.classifier = CognitiveClassifier(
            runtime.history, self.event_bus, config, clock=self._clock
        )
        self.on(ACTION_RECORDED, self._on_action_recorded)
        for event_name, spec in self.get_config("action_events", {}).items():
            self.on(event_name, self._recorder(event_name, spec))
        await self.set_state(self.state_path, CognitiveState.NEUTRAL.value)

    async def on_destroy(self) -> None:
        self.classifier = None

    # ==================== analysis ====================

    async def _on_action_recorded(self, event: Event) -> None:
        await self.maybe_analyze()

    async def maybe_analyze(self, now: float | None = None) -> Classification | None:
        """Evaluate unless the previous evaluation is younger than the analysis interval."""
        classifier = self._require(self.classifier, "analyze")
        now = self._clock() if now is None else now
        interval = classifier.config.analysis_interval_ms
        if self._last_analysis is not None and now - self._last_analysis < interval:
            return None
        self._last_analysis = now
        result = await classifier.evaluate(now)
        if result.changed:
            await self.set_state(self.state_path, result.state.value)
        return result

    async def force_state(self, state: CognitiveState | str) -> Classification:
        classifier = self._require(self.classifier, "force state")
        result = await classifier.force_state(state)
        await self.set_state(self.state_path, result.state.value)
        return result

    async def reset(self) -> None:
        classifier = self._require(self.classifier, "reset")
        await classifier.reset()
        self._last_analysis = None
        await self.set_state(self.state_path, CognitiveState.NEUTRAL.value)

    def current_state(self) -> dict[str, Any]:
        return self._require(self.classifier, "read state").snapshot()

    def detailed_analysis(self) -> dict[str, Any]:
        return self._require(self.classifier, "analyze").detailed_analysis()

    # ==================== input mapping ====================

    def _recorder(self, event_name: str, spec: Mapping[str, Any]) -> Callable[[Event], Any]:
        action_type = spec.get("type") or event_name
        forced_success = spec.get("success")

        async def record(event: Event) -> None:
            data = event.payload if isinstance(event.payload, Mapping) else {}
            success = data.get("success", True) if forced_success is None else forced_success
            runtime = self._require(self.runtime, "record actions")
            await runtime.record_action(
                {
                    "type": action_type,
                    "timestamp": self._clock(),
                    "duration_ms": data.get("duration_ms", 0),
                    "success": success,
                    "start_pos": data.get("start_pos"),
                    "end_pos": data.get("end_pos"),
                    "metadata": dict(data),
                }
            )

        record.__qualname__ = f"{type(self).__name__}.record[{event_name}]"
        return record
