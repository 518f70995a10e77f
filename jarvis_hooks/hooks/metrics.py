"""Background metrics capture for PostToolUse."""

from __future__ import annotations

from jarvis_hooks.hooks.models import Decision, HookEvent
from jarvis_hooks.hooks.session_tracker import skill_name
from jarvis_hooks.services.metrics import MetricsStore


class MetricsCapture:
    def __init__(self, metrics: MetricsStore) -> None:
        self._metrics = metrics

    def handle(self, event: HookEvent) -> Decision:
        if event.tool_name:
            skill = skill_name(event.tool_input) if event.tool_name == "Skill" else None
            self._metrics.record_tool(event.timestamp, event.tool_name, skill=skill)
        return Decision.allow()
