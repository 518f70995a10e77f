"""Domain types for hook input and output.

Immutable data types for one hook invocation: the parsed event, the
per-handler verdicts and the folded decision the runtime writes back to
the host.  None of these are persisted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from jarvis_hooks.core.models import EventKind, Priority, ViolationClass
from jarvis_hooks.core.utils import format_timestamp, utc_now


class Verdict(str, Enum):
    ALLOW = "allow"
    BLOCK = "block"


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HookEvent:
    """Parsed representation of one hook's stdin JSON.

    Frozen dataclass, immutable after construction.  Fields that don't
    apply to ``kind`` are left empty.
    """

    kind: EventKind
    session_id: str = ""
    tool_name: str = ""
    tool_input: dict[str, Any] = field(default_factory=dict)
    tool_response: Any = None
    prompt: str = ""
    cwd: str = ""
    source: str = ""  # SessionStart: "startup" | "resume" | "clear" | "compact"
    trigger: str = ""  # PreCompact: "manual" | "auto"
    custom_instructions: str = ""  # PreCompact
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def from_payload(
        cls,
        kind: EventKind,
        data: dict[str, Any],
        now: datetime | None = None,
    ) -> HookEvent:
        """Build an event from stdin data, degrading bad fields to empty."""

        def _str(name: str) -> str:
            value = data.get(name, "")
            return value if isinstance(value, str) else ""

        tool_input = data.get("tool_input", {})
        return cls(
            kind=kind,
            session_id=_str("session_id"),
            tool_name=_str("tool_name"),
            tool_input=tool_input if isinstance(tool_input, dict) else {},
            tool_response=data.get("tool_response"),
            prompt=_str("prompt"),
            cwd=_str("cwd"),
            source=_str("source"),
            trigger=_str("trigger"),
            custom_instructions=_str("custom_instructions"),
            timestamp=now or utc_now(),
        )

    @property
    def command(self) -> str:
        """Shell command for a Bash tool call, or ``""``."""
        value = self.tool_input.get("command", "")
        return value if isinstance(value, str) else ""

    @property
    def file_path(self) -> str:
        """Target file of an edit-style tool call, or ``""``."""
        for key in ("file_path", "notebook_path", "path"):
            value = self.tool_input.get(key)
            if isinstance(value, str) and value:
                return value
        return ""

    @property
    def tool_failed(self) -> bool:
        """True if the tool response reports a failed execution."""
        response = self.tool_response
        if isinstance(response, dict):
            if response.get("success") is False:
                return True
            if response.get("is_error") or response.get("isError"):
                return True
            error = response.get("error")
            return bool(error)
        return False


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SkillRule:
    """Keywords that suggest a skill, with the skill's priority bucket.

    Keywords match as whole words (or whole phrases), case-insensitively.
    """

    skill_id: str
    keywords: tuple[str, ...]
    priority: Priority = Priority.MEDIUM
    description: str = ""
    _pattern: re.Pattern[str] | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        words = [k.strip().lower() for k in self.keywords if k and k.strip()]
        if words:
            alternation = "|".join(re.escape(w) for w in sorted(set(words), key=len, reverse=True))
            pattern: re.Pattern[str] | None = re.compile(rf"(?<!\w)(?:{alternation})(?!\w)")
        else:
            pattern = None
        object.__setattr__(self, "_pattern", pattern)

    def matches(self, prompt: str) -> bool:
        if self._pattern is None or not prompt:
            return False
        return self._pattern.search(prompt.lower()) is not None


@dataclass(frozen=True)
class SkillRecommendation:
    skill_id: str
    priority: Priority
    session_id: str = ""


# ---------------------------------------------------------------------------
# Safety
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SafetyVerdict:
    """Outcome of checking one proposed command or edit."""

    decision: Verdict = Verdict.ALLOW
    reason: str | None = None
    rule_id: str | None = None
    category: str | None = None
    violation: ViolationClass | None = None

    @property
    def blocked(self) -> bool:
        return self.decision is Verdict.BLOCK

    @classmethod
    def allow(cls) -> SafetyVerdict:
        return cls()

    @classmethod
    def block(
        cls,
        reason: str,
        rule_id: str,
        category: str,
        violation: ViolationClass,
    ) -> SafetyVerdict:
        return cls(
            decision=Verdict.BLOCK,
            reason=reason,
            rule_id=rule_id,
            category=category,
            violation=violation,
        )


# ---------------------------------------------------------------------------
# Compaction recovery
# ---------------------------------------------------------------------------

TASK_STATE_HINT = (
    "**IMPORTANT:** Check your todo list for current phase and continue from there."
)


@dataclass(frozen=True)
class RecoveryContext:
    """What to tell the assistant after its context was compacted."""

    active_skill: str | None
    task_summary: str | None
    compaction_time: datetime

    @property
    def skill_reload_instruction(self) -> str:
        if not self.active_skill:
            return ""
        return (
            f"**Previously Active Skill:** {self.active_skill}\n"
            f'→ Use `skill: "{self.active_skill}"` to reload'
        )

    @property
    def task_state_hint(self) -> str:
        return TASK_STATE_HINT

    def render(self) -> str:
        parts = [
            "COMPACTION RECOVERY",
            f"Context was compacted at: {format_timestamp(self.compaction_time)}",
        ]
        if self.skill_reload_instruction:
            parts.append(self.skill_reload_instruction)
        if self.task_summary:
            parts.append(f"**In-Progress Task:** {self.task_summary}")
        parts.append(self.task_state_hint)
        return "\n\n".join(parts)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Decision:
    """A handler's verdict, and also the runtime's folded result.

    ``additional_context`` is injected into the assistant's context;
    ``system_message`` is shown to the user.  A handler that carried on
    after a state failure sets ``degraded`` so the runtime counts the run
    against the hook's health; it is never written to stdout.
    """

    decision: Verdict = Verdict.ALLOW
    reason: str = ""
    additional_context: str = ""
    system_message: str = ""
    degraded: str = ""

    @classmethod
    def allow(cls) -> Decision:
        return cls()

    @classmethod
    def block(cls, reason: str) -> Decision:
        return cls(decision=Verdict.BLOCK, reason=reason)

    @classmethod
    def context(cls, text: str) -> Decision:
        return cls(additional_context=text)

    @property
    def blocked(self) -> bool:
        return self.decision is Verdict.BLOCK

    @property
    def exit_code(self) -> int:
        return 1 if self.blocked else 0

    def to_response(self, kind: EventKind) -> dict[str, Any] | None:
        """Build the stdout JSON for this decision.

        Returns:
            Response dict, or ``None`` if nothing should be written.
        """
        response: dict[str, Any] | None
        if self.blocked:
            response = {"decision": "block", "reason": self.reason}
        elif self.additional_context and kind is not EventKind.POST_TOOL_USE:
            response = {
                "hookSpecificOutput": {
                    "hookEventName": kind.value,
                    "additionalContext": self.additional_context,
                }
            }
        elif kind is EventKind.POST_TOOL_USE:
            response = {"continue": True, "suppressOutput": True}
        else:
            response = None

        if self.system_message:
            response = dict(response or {})
            response["systemMessage"] = self.system_message
        return response
