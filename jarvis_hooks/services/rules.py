"""Rule store: skill activation rules and memory promotion policy.

Skill rules are loaded fresh for every invocation, from the first source
that exists:

1. ``<project>/.claude/skills/skill-rules.json``
2. the global rules file (``JARVIS_SKILL_RULES_PATH``)
3. the built-in defaults below

A rules file may be either a mapping::

    {"skills": {"testing": {"keywords": ["test", "tdd"], "priority": "critical"}}}

or a list of ``{"skill_id": ..., "keywords": [...], "priority": ...}``
objects.  ``promptTriggers.keywords`` is accepted in place of ``keywords``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jarvis_hooks.config import Settings
from jarvis_hooks.core.errors import RuleLoadError
from jarvis_hooks.core.models import Priority
from jarvis_hooks.hooks.models import SkillRule
from jarvis_hooks.services.safety_rules import (
    DEFAULT_SAFE_PATTERNS,
    BlockRule,
    SafePattern,
    build_block_rules,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Built-in skill rules
# ---------------------------------------------------------------------------

DEFAULT_SKILL_RULES: tuple[SkillRule, ...] = (
    SkillRule(
        "session-management",
        ("feature", "implement", "build", "create", "refactor", "bug", "fix",
         "multi-step", "complex", "implementation"),
        Priority.CRITICAL,
        "Plan and track multi-step work across a session",
    ),
    SkillRule(
        "sub-agent-invocation",
        ("agent", "agents", "delegate", "sub-agent", "specialist", "coordination",
         "parallel", "task"),
        Priority.CRITICAL,
        "Delegate work to specialist sub-agents",
    ),
    SkillRule(
        "testing",
        ("test", "tdd", "tests", "testing"),
        Priority.CRITICAL,
        "Test-driven development workflow",
    ),
    SkillRule(
        "git-expert",
        ("commit", "push", "branch", "pr", "merge", "git", "version control"),
        Priority.HIGH,
        "Safe git and pull request workflow",
    ),
    SkillRule(
        "debugging",
        ("debug", "error", "failing", "broken", "not working", "investigate",
         "issue", "bug", "trace"),
        Priority.HIGH,
        "Systematic root-cause debugging",
    ),
    SkillRule(
        "codebase-navigation",
        ("find", "locate", "where", "search", "codebase", "structure",
         "architecture", "explore"),
        Priority.HIGH,
        "Find your way around an unfamiliar codebase",
    ),
    SkillRule(
        "documentation-research",
        ("documentation", "docs", "api", "reference", "library", "latest",
         "current", "how to use"),
        Priority.CRITICAL,
        "Look up current library documentation before coding against it",
    ),
    SkillRule(
        "frontend-design",
        ("design", "ui", "interface", "visual", "aesthetic", "creative", "polished",
         "beautiful", "modern"),
        Priority.HIGH,
        "Distinctive, production-grade frontend design",
    ),
    SkillRule(
        "infra-ops",
        ("vps", "server", "ssh", "deploy", "docker", "nginx", "ssl",
         "infrastructure", "devops", "container"),
        Priority.HIGH,
        "Server and deployment operations",
    ),
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_rule(skill_id: str, spec: Any, path: Path) -> SkillRule:
    if not isinstance(spec, dict):
        raise RuleLoadError(path, f"rule {skill_id!r} is not an object")

    keywords = spec.get("keywords")
    if keywords is None:
        triggers = spec.get("promptTriggers")
        if isinstance(triggers, dict):
            keywords = triggers.get("keywords")
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        raise RuleLoadError(path, f"rule {skill_id!r} has no keyword list")

    raw_priority = str(spec.get("priority", Priority.MEDIUM.value)).lower()
    try:
        priority = Priority(raw_priority)
    except ValueError as e:
        raise RuleLoadError(path, f"rule {skill_id!r} has unknown priority {raw_priority!r}") from e

    return SkillRule(
        skill_id=skill_id,
        keywords=tuple(keywords),
        priority=priority,
        description=str(spec.get("description", "")),
    )


def parse_skill_rules(raw: Any, path: Path) -> tuple[SkillRule, ...]:
    """Parse the contents of a skill-rules file.

    Raises:
        RuleLoadError: If the structure is not a recognizable rules document.
    """
    if isinstance(raw, dict):
        skills = raw.get("skills", raw)
        if not isinstance(skills, dict):
            raise RuleLoadError(path, "'skills' must be an object")
        return tuple(_parse_rule(str(name), spec, path) for name, spec in skills.items())

    if isinstance(raw, list):
        rules = []
        for spec in raw:
            name = (spec.get("skill_id") or spec.get("name")) if isinstance(spec, dict) else None
            if not name:
                raise RuleLoadError(path, "list entries need a skill_id")
            rules.append(_parse_rule(str(name), spec, path))
        return tuple(rules)

    raise RuleLoadError(path, "expected an object or a list")


def load_skill_rules_file(path: Path) -> tuple[SkillRule, ...]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise RuleLoadError(path, f"unreadable: {e}") from e
    except json.JSONDecodeError as e:
        raise RuleLoadError(path, f"invalid JSON: {e}") from e
    return parse_skill_rules(raw, path)


# ---------------------------------------------------------------------------
# Promotion policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PromotionPolicy:
    """When a pattern earns a hot-tier entry, and how confident it is."""

    threshold: int = 3
    confidence_scale: float = 10.0

    def should_promote(self, count: int) -> bool:
        return count >= self.threshold

    def confidence(self, count: int) -> float:
        return min(count / self.confidence_scale, 1.0)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class RuleStore:
    """Read-only view of every rule table for one invocation."""

    def __init__(self, settings: Settings, project_root: str | Path = "") -> None:
        self._settings = settings
        self._project_root = Path(project_root) if project_root else None

    def _candidate_paths(self) -> list[Path]:
        candidates = []
        project_path = self._settings.project_skill_rules_path
        if self._project_root is not None and not project_path.is_absolute():
            candidates.append(self._project_root / project_path)
        elif project_path.is_absolute():
            candidates.append(project_path)
        if self._settings.skill_rules_path is not None:
            candidates.append(self._settings.skill_rules_path)
        return candidates

    def skill_rules(self) -> tuple[SkillRule, ...]:
        """Load skill rules from the first available source.

        A file that exists but can't be parsed is skipped with a warning so
        a typo in one rules file never disables skill activation entirely.
        """
        for path in self._candidate_paths():
            if not path.is_file():
                continue
            try:
                rules = load_skill_rules_file(path)
            except RuleLoadError as e:
                logger.warning(str(e))
                continue
            logger.debug(f"Loaded {len(rules)} skill rules from {path}")
            return rules
        return DEFAULT_SKILL_RULES

    @property
    def promotion_policy(self) -> PromotionPolicy:
        return PromotionPolicy(
            threshold=self._settings.warm_promotion_threshold,
            confidence_scale=self._settings.confidence_scale,
        )

    @property
    def safe_patterns(self) -> tuple[SafePattern, ...]:
        return DEFAULT_SAFE_PATTERNS

    @property
    def block_rules(self) -> tuple[BlockRule, ...]:
        return build_block_rules(self._settings.protected_branches)

    @property
    def protected_branches(self) -> frozenset[str]:
        return frozenset(self._settings.protected_branches)
