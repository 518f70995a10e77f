"""Daily usage metrics (tool calls, skills invoked)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from jarvis_hooks.ports.storage import StateStoreProtocol

METRICS_NAMESPACE = "metrics"


class MetricsStore:
    """Counters bucketed by UTC day: ``{"2024-01-15": {"tools": {...}, "skills": {...}}}``."""

    def __init__(self, store: StateStoreProtocol) -> None:
        self._store = store

    def record_tool(self, when: datetime, tool_name: str, skill: str | None = None) -> None:
        day = when.strftime("%Y-%m-%d")

        def _bump(raw: Any) -> dict[str, Any]:
            bucket = raw if isinstance(raw, dict) else {}
            tools = bucket.setdefault("tools", {})
            tools[tool_name] = int(tools.get(tool_name, 0)) + 1
            bucket["total"] = int(bucket.get("total", 0)) + 1
            if skill:
                skills = bucket.setdefault("skills", {})
                skills[skill] = int(skills.get(skill, 0)) + 1
            return bucket

        self._store.update(day, _bump)

    def day(self, day: str) -> dict[str, Any]:
        value = self._store.get(day, {})
        return value if isinstance(value, dict) else {}
