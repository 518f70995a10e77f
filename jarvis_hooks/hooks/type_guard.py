"""TypeScript ``any`` guard for edit tool calls.

Runs on PreToolUse for Edit, Write and MultiEdit.  New text written to a
``.ts``/``.tsx`` file is scanned for explicit ``any`` annotations (``: any``,
``as any``, ``any[]``, ``<any>``).  With the default ``warn`` severity the
hook adds a note to the assistant's context; with ``error`` it blocks.
Words merely containing "any" (``company``, ``many``) never match.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePath
from typing import Literal

from jarvis_hooks.core.models import ViolationClass
from jarvis_hooks.hooks.models import Decision, HookEvent, SafetyVerdict
from jarvis_hooks.hooks.pattern_capture import edit_content
from jarvis_hooks.services.safety_rules import CATEGORY_TYPE_SAFETY

logger = logging.getLogger(__name__)

ANY_TYPE_TOOLS: frozenset[str] = frozenset({"Edit", "Write", "MultiEdit"})
TYPESCRIPT_SUFFIXES: frozenset[str] = frozenset({".ts", ".tsx"})

_ANY_TYPE_RE = re.compile(r":\s*any\b|<any>|<any,|,\s*any>|\bas\s+any\b|\bany\[\]")

_ALTERNATIVES = (
    "Use specific types instead:\n"
    "  - unknown    - for truly unknown types (requires narrowing)\n"
    "  - never      - for impossible cases\n"
    "  - Record<string, T> - for objects with string keys\n"
    "  - T | null   - for nullable values"
)

Severity = Literal["warn", "error"]


def find_any_types(content: str) -> list[str]:
    """``"<line>: <text>"`` for each line of *content* with an explicit ``any``."""
    return [
        f"{number}: {line.strip()}"
        for number, line in enumerate(content.splitlines(), start=1)
        if _ANY_TYPE_RE.search(line)
    ]


def is_typescript(file_path: str) -> bool:
    return PurePath(file_path).suffix.lower() in TYPESCRIPT_SUFFIXES


class AnyTypeGuard:
    """Flags explicit ``any`` types in TypeScript edits."""

    def __init__(self, severity: Severity = "warn") -> None:
        self._severity = severity

    def evaluate(self, file_path: str, content: str) -> tuple[SafetyVerdict, list[str]]:
        """Check *content* about to be written to *file_path*.

        Returns:
            The verdict and the offending lines (empty when clean).
        """
        if not file_path or not is_typescript(file_path):
            return SafetyVerdict.allow(), []

        found = find_any_types(content)
        if not found:
            return SafetyVerdict.allow(), []

        logger.warning(f"Found {len(found)} 'any' type(s) in {PurePath(file_path).name}")
        if self._severity != "error":
            return SafetyVerdict.allow(), found

        reason = (
            f"ANY TYPE DETECTED in {file_path}\n\nFound:\n"
            + "\n".join(found)
            + f"\n\n{_ALTERNATIVES}\n\nIf 'any' is truly needed, add bypass: CLAUDE_ALLOW_ANY=1"
        )
        verdict = SafetyVerdict.block(
            reason=reason,
            rule_id="no-any-types",
            category=CATEGORY_TYPE_SAFETY,
            violation=ViolationClass.DIVERGENT_BEHAVIOR,
        )
        return verdict, found

    def handle(self, event: HookEvent) -> Decision:
        verdict, found = self.evaluate(event.file_path, edit_content(event))
        if verdict.blocked:
            return Decision.block(verdict.reason or "")
        if found:
            return Decision.context(
                f"WARNING: 'any' type detected in {event.file_path}. "
                "Consider using specific types instead.\n" + "\n".join(found)
            )
        return Decision.allow()
