"""Skill activation: recommend skills whose keywords appear in a prompt.

Runs on UserPromptSubmit.  Recommendations are deduplicated per session so
the same skill is suggested at most once until the session goes idle.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from jarvis_hooks.core.errors import StorageError
from jarvis_hooks.core.models import Priority
from jarvis_hooks.hooks.models import Decision, HookEvent, SkillRecommendation, SkillRule
from jarvis_hooks.services.session_state import SessionStateStore

logger = logging.getLogger(__name__)

_HEADER = "SKILL ACTIVATION CHECK"
_FOOTER = "ACTION: Use Skill tool BEFORE responding to load relevant skills."


def rank_matches(rules: Sequence[SkillRule], prompt: str) -> list[SkillRule]:
    """Rules matching *prompt*, ordered by priority then definition order."""
    matched = [(index, rule) for index, rule in enumerate(rules) if rule.matches(prompt)]
    matched.sort(key=lambda pair: (pair[1].priority.rank, pair[0]))
    return [rule for _, rule in matched]


def render_recommendations(recommendations: Sequence[SkillRecommendation]) -> str:
    """Format recommendations as the context block shown to the assistant."""
    if not recommendations:
        return ""

    lines = [_HEADER, ""]
    for priority in Priority:
        bucket = [r for r in recommendations if r.priority is priority]
        if not bucket:
            continue
        lines.append(priority.heading)
        lines.extend(f"  -> {r.skill_id}" for r in bucket)
        lines.append("")
    lines.append(_FOOTER)
    return "\n".join(lines)


class SkillActivationMatcher:
    """Matches prompts against skill rules with per-session dedup."""

    def __init__(
        self,
        rules: Callable[[], Sequence[SkillRule]],
        sessions: SessionStateStore,
    ) -> None:
        """Initialize the matcher.

        Args:
            rules: Returns the current rule set (loaded fresh per call).
            sessions: Session state used for deduplication.
        """
        self._rules = rules
        self._sessions = sessions

    def match(self, prompt: str, session_id: str) -> list[SkillRecommendation]:
        """Recommend skills for *prompt* that the session hasn't seen yet.

        A blank *session_id* disables dedup.  If session state can't be
        written, every match is returned.
        """
        recommendations, _ = self._match(prompt, session_id)
        return recommendations

    def _match(self, prompt: str, session_id: str) -> tuple[list[SkillRecommendation], str]:
        """Like ``match``, plus the session-state error that was swallowed (or ``""``)."""
        if not prompt or not prompt.strip():
            return [], ""

        ranked = rank_matches(self._rules(), prompt)
        if not ranked:
            return [], ""

        degraded = ""
        try:
            fresh = set(self._sessions.claim(session_id, [r.skill_id for r in ranked]))
        except StorageError as e:
            logger.warning(f"Session state unavailable, skipping dedup: {e}")
            fresh = {r.skill_id for r in ranked}
            degraded = f"session state unavailable: {e}"

        recommendations = [
            SkillRecommendation(skill_id=r.skill_id, priority=r.priority, session_id=session_id)
            for r in ranked
            if r.skill_id in fresh
        ]
        if recommendations:
            logger.info(f"Recommending skills: {', '.join(r.skill_id for r in recommendations)}")
        return recommendations, degraded

    def handle(self, event: HookEvent) -> Decision:
        recommendations, degraded = self._match(event.prompt, event.session_id)
        return Decision(
            additional_context=render_recommendations(recommendations),
            degraded=degraded,
        )
