"""Pattern capture: learn recurring code patterns from successful edits.

Runs in the background after PostToolUse for edit tools.  Each edit is
classified against an ordered table of ``(pattern_key, predicate)``
entries; every matching key is counted in the pattern ledger, and a key
whose count reaches the promotion threshold becomes a hot-tier learning
(once).

``file_type:<language>`` keys are counted for usage statistics but never
promoted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import PurePath

from jarvis_hooks.core.errors import StorageError
from jarvis_hooks.core.models import MemoryTierEntry
from jarvis_hooks.hooks.models import Decision, HookEvent
from jarvis_hooks.services.memory_tiers import Promoter
from jarvis_hooks.services.pattern_ledger import PatternLedger
from jarvis_hooks.services.rules import PromotionPolicy

logger = logging.getLogger(__name__)

CAPTURE_TOOLS: frozenset[str] = frozenset({"Edit", "Write", "MultiEdit"})

EXTENSION_LANGUAGES: dict[str, str] = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "sh": "shell",
    "bash": "shell",
}


# ---------------------------------------------------------------------------
# Classification table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EditSample:
    """The parts of an edit the classifiers look at."""

    tool_name: str
    file_path: str
    language: str | None
    content: str


@dataclass(frozen=True)
class ClassifierRule:
    pattern_key: str
    predicate: Callable[[EditSample], bool]
    promotable: bool = True


def _lang_content(language: str, pattern: str, flags: int = re.DOTALL) -> Callable[[EditSample], bool]:
    compiled = re.compile(pattern, flags)

    def _predicate(sample: EditSample) -> bool:
        return sample.language == language and compiled.search(sample.content) is not None

    return _predicate


def _is_language(language: str) -> Callable[[EditSample], bool]:
    return lambda sample: sample.language == language


DEFAULT_CLASSIFIERS: tuple[ClassifierRule, ...] = (
    # TypeScript
    ClassifierRule("ts:error_handling", _lang_content("typescript", r"\btry\b.*\bcatch\b")),
    ClassifierRule("ts:async_pattern", _lang_content("typescript", r"\basync\b.*\bawait\b")),
    ClassifierRule(
        "ts:type_definition",
        _lang_content("typescript", r"\binterface\s+\w+|\btype\s+\w+[^\n=]*=", re.MULTILINE),
    ),
    ClassifierRule(
        "ts:module_export",
        _lang_content("typescript", r"\bexport\s+(?:default\s+)?(?:async\s+)?(?:function|const)\b"),
    ),
    ClassifierRule("ts:zod_validation", _lang_content("typescript", r"\bzod\b|\bz\.\w+")),
    ClassifierRule(
        "ts:react_hooks", _lang_content("typescript", r"\buse(?:Effect|State|Callback)\b")
    ),
    # JavaScript
    ClassifierRule("js:error_handling", _lang_content("javascript", r"\btry\b.*\bcatch\b")),
    ClassifierRule(
        "js:async_pattern", _lang_content("javascript", r"\basync\b.*\bawait\b|\bPromise\b")
    ),
    ClassifierRule(
        "js:module_export", _lang_content("javascript", r"\bmodule\.exports\b|\bexport\b")
    ),
    # Python
    ClassifierRule("py:error_handling", _lang_content("python", r"\btry:.*\bexcept\b")),
    ClassifierRule("py:async_pattern", _lang_content("python", r"\basync\s+def\b|\bawait\b")),
    ClassifierRule(
        "py:type_hints", _lang_content("python", r"\bdef\s+\w+\(.*\)\s*->", re.MULTILINE)
    ),
    ClassifierRule("py:module_import", _lang_content("python", r"^\s*(?:from\s+\S+\s+)?import\b", re.MULTILINE)),
    # Shell
    ClassifierRule("sh:strict_mode", _lang_content("shell", r"\bset\s+-[euo]")),
    ClassifierRule("sh:conditional", _lang_content("shell", r"\bif\s+\[\[.*\]\]", re.MULTILINE)),
    ClassifierRule(
        "sh:function_definition",
        _lang_content("shell", r"^\s*(?:function\s+\w+|\w+\s*\(\)\s*\{)", re.MULTILINE),
    ),
    # Usage statistics
    ClassifierRule("file_type:typescript", _is_language("typescript"), promotable=False),
    ClassifierRule("file_type:javascript", _is_language("javascript"), promotable=False),
    ClassifierRule("file_type:python", _is_language("python"), promotable=False),
    ClassifierRule("file_type:shell", _is_language("shell"), promotable=False),
)


def language_for(file_path: str) -> str | None:
    suffix = PurePath(file_path).suffix.lower().lstrip(".")
    return EXTENSION_LANGUAGES.get(suffix)


def edit_content(event: HookEvent) -> str:
    """New text introduced by an Edit, Write or MultiEdit call."""
    tool_input = event.tool_input
    parts: list[str] = []
    for key in ("content", "new_string"):
        value = tool_input.get(key)
        if isinstance(value, str):
            parts.append(value)
    edits = tool_input.get("edits")
    if isinstance(edits, list):
        for edit in edits:
            if isinstance(edit, dict) and isinstance(edit.get("new_string"), str):
                parts.append(edit["new_string"])
    return "\n".join(parts)


def sample_from_event(event: HookEvent) -> EditSample | None:
    if event.tool_name not in CAPTURE_TOOLS or not event.file_path:
        return None
    return EditSample(
        tool_name=event.tool_name,
        file_path=event.file_path,
        language=language_for(event.file_path),
        content=edit_content(event),
    )


# ---------------------------------------------------------------------------
# Capture
# ---------------------------------------------------------------------------


@dataclass
class CaptureResult:
    promoted: list[MemoryTierEntry] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class PatternCapture:
    """Counts classified patterns and promotes the frequent ones."""

    def __init__(
        self,
        ledger: PatternLedger,
        promoter: Promoter,
        policy: PromotionPolicy,
        classifiers: tuple[ClassifierRule, ...] = DEFAULT_CLASSIFIERS,
    ) -> None:
        self._ledger = ledger
        self._promoter = promoter
        self._policy = policy
        self._classifiers = classifiers

    def classify(self, event: HookEvent) -> list[ClassifierRule]:
        sample = sample_from_event(event)
        if sample is None or sample.language is None:
            return []
        return [rule for rule in self._classifiers if rule.predicate(sample)]

    def capture(self, event: HookEvent) -> list[MemoryTierEntry]:
        """Record every pattern in *event*.

        Returns:
            Hot-tier entries created by this call.
        """
        return self.run(event).promoted

    def run(self, event: HookEvent) -> CaptureResult:
        """Record every pattern in *event*, collecting per-key store errors.

        A key whose promotion was claimed in the ledger but whose hot entry
        was never written (the write failed) is promoted again on its next
        occurrence; ``Promoter.promote`` ignores keys that already have one.
        """
        result = CaptureResult()
        if event.tool_failed:
            logger.debug(f"Not capturing failed {event.tool_name} call")
            return result

        for rule in self.classify(event):
            threshold = self._policy.threshold if rule.promotable else None
            try:
                occurrence = self._ledger.record_occurrence(rule.pattern_key, promote_at=threshold)
                logger.debug(f"Pattern {rule.pattern_key} seen {occurrence.record.count}x")
                if not rule.promotable or occurrence.record.promoted_entry_id is None:
                    continue
                entry = self._promoter.promote(
                    occurrence.record, description=f"Detected pattern: {rule.pattern_key}"
                )
            except StorageError as e:
                logger.warning(f"Cannot record pattern {rule.pattern_key}: {e}")
                result.errors.append(f"{rule.pattern_key}: {e}")
                continue
            if entry is not None:
                if not occurrence.newly_promoted:
                    logger.info(f"Recovered interrupted promotion of {rule.pattern_key}")
                result.promoted.append(entry)
        return result

    def handle(self, event: HookEvent) -> Decision:
        result = self.run(event)
        if result.errors:
            return Decision(degraded="; ".join(result.errors))
        return Decision.allow()
