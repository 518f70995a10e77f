"""Track what a session is working on.

PostToolUse on ``Skill`` records the active skill; on ``TodoWrite`` it
records the in-progress todo.  The compaction guard reads both when it
preserves state.
"""

from __future__ import annotations

import logging
from typing import Any

from jarvis_hooks.core.utils import truncate
from jarvis_hooks.hooks.models import Decision, HookEvent
from jarvis_hooks.services.session_state import SessionContextStore

logger = logging.getLogger(__name__)

TRACKED_TOOLS: frozenset[str] = frozenset({"Skill", "TodoWrite"})


def skill_name(tool_input: dict[str, Any]) -> str | None:
    for key in ("skill", "command"):
        value = tool_input.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def in_progress_todo(tool_input: dict[str, Any]) -> str | None:
    """Content of the first todo marked ``in_progress``."""
    todos = tool_input.get("todos")
    if not isinstance(todos, list):
        return None
    for todo in todos:
        if not isinstance(todo, dict) or todo.get("status") != "in_progress":
            continue
        content = todo.get("content") or todo.get("activeForm")
        if isinstance(content, str) and content.strip():
            return content.strip()
    return None


class SessionTracker:
    def __init__(self, contexts: SessionContextStore, summary_max_chars: int = 200) -> None:
        self._contexts = contexts
        self._max_chars = summary_max_chars

    def track(self, event: HookEvent) -> None:
        if not event.session_id or event.tool_failed:
            return
        if event.tool_name == "Skill":
            skill = skill_name(event.tool_input)
            if skill:
                self._contexts.record(event.session_id, active_skill=skill)
                logger.debug(f"Active skill: {skill}")
        elif event.tool_name == "TodoWrite":
            todo = in_progress_todo(event.tool_input)
            if todo:
                self._contexts.record(
                    event.session_id, task_summary=truncate(todo, self._max_chars)
                )

    def handle(self, event: HookEvent) -> Decision:
        self.track(event)
        return Decision.allow()
