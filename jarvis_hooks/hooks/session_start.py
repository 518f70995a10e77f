"""SessionStart hook: remind the assistant what it has learned.

Fires on ``startup`` and ``resume`` only; ``clear`` and ``compact`` are
ignored (compaction has its own recovery path).  The context lists warm-tier
learnings and, if the previous session ran degraded, a warning about it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from jarvis_hooks.core.errors import StorageError
from jarvis_hooks.core.models import Tier
from jarvis_hooks.hooks.models import Decision, HookEvent
from jarvis_hooks.services.health import level_name
from jarvis_hooks.services.memory_tiers import MemoryTierStore

logger = logging.getLogger(__name__)

_TRIGGER_SOURCES = frozenset({"startup", "resume"})
_OPEN_TAG = "<JARVIS_SESSION_CONTEXT>"
_CLOSE_TAG = "</JARVIS_SESSION_CONTEXT>"
_MAX_LEARNINGS = 10


class SessionStartContext:
    def __init__(
        self,
        tiers: MemoryTierStore,
        previous_level: Callable[[], int] = lambda: 0,
        max_learnings: int = _MAX_LEARNINGS,
    ) -> None:
        self._tiers = tiers
        self._previous_level = previous_level
        self._max_learnings = max_learnings

    def build(self) -> str:
        """Render the context block, or ``""`` when there is nothing to say."""
        sections: list[str] = []

        try:
            warm = self._tiers.list(Tier.WARM)
        except StorageError as e:
            logger.warning(f"Cannot read warm tier: {e}")
            warm = []
        warm.sort(key=lambda entry: entry.confidence, reverse=True)
        if warm:
            lines = ["Active learnings:"]
            for entry in warm[: self._max_learnings]:
                description = entry.description or entry.source_pattern_key
                lines.append(f"- {description} (confidence {entry.confidence:.2f})")
            sections.append("\n".join(lines))

        level = self._previous_level()
        if level > 0:
            sections.append(
                f"Warning: hooks were running degraded (level {level}: {level_name(level)}) "
                "in the previous session. Hook health has been reset."
            )

        if not sections:
            return ""
        return "\n".join([_OPEN_TAG, "\n\n".join(sections), _CLOSE_TAG])

    def handle(self, event: HookEvent) -> Decision:
        if event.source not in _TRIGGER_SOURCES:
            return Decision.allow()
        text = self.build()
        if not text:
            return Decision.allow()
        return Decision.context(text)
