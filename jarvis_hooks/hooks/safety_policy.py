"""Safety policy engine for shell commands and file edits.

Command evaluation order (first match wins):

1. ``CLAUDE_ALLOW_DESTRUCTIVE=1`` in the environment: allow everything.
2. Unscoped safe patterns: allow.  Scoped safe patterns: remember which
   block rules they exempt.
3. Block rules, in table order.  A rule is passed over when a safe pattern
   exempts it or its category is bypassed (environment flag or an inline
   ``NAME=1`` prefix on the command).
4. Allow.

An inline prefix never acts globally: ``CLAUDE_ALLOW_DESTRUCTIVE=1 git ...``
only lifts the destructive category.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from jarvis_hooks.adapters.git import RepoInfo, inspect_repo
from jarvis_hooks.core.models import ViolationClass
from jarvis_hooks.hooks.models import Decision, HookEvent, SafetyVerdict
from jarvis_hooks.services.safety_rules import (
    CATEGORY_BYPASS_FLAGS,
    CATEGORY_ISOLATION,
    DEFAULT_BLOCK_RULES,
    DEFAULT_SAFE_PATTERNS,
    GLOBAL_BYPASS_FLAG,
    BlockRule,
    SafePattern,
)

logger = logging.getLogger(__name__)

EDIT_TOOLS: frozenset[str] = frozenset({"Edit", "Write", "MultiEdit", "NotebookEdit"})

_INLINE_ASSIGNMENTS_RE = re.compile(r"^\s*((?:[A-Za-z_][A-Za-z0-9_]*=\S*\s+)+)")
_ASSIGNMENT_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)=(\S*)")
_ABSOLUTE_BIN_RE = re.compile(r"(^|[;&|]\s*|\s)(?:/\S*)?/s?bin/(git|rm)(?=\s|$)")

_WORKTREE_REMEDIATION = (
    "To proceed:\n"
    "1. Create a git worktree:\n"
    "   git worktree add .worktrees/feature-name -b feature/feature-name\n"
    "   cd .worktrees/feature-name\n\n"
    "2. Or use Conductor for isolated sessions\n\n"
    "3. For emergency fixes only:\n"
    "   CLAUDE_ALLOW_MAIN_MODIFICATIONS=1\n\n"
    "This policy ensures all work happens in isolated workspaces."
)


# ---------------------------------------------------------------------------
# Bypass resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BypassFlags:
    """Bypass flags in effect for one command."""

    environ: Mapping[str, str]
    inline: frozenset[str] = frozenset()

    @property
    def global_bypass(self) -> bool:
        return self.environ.get(GLOBAL_BYPASS_FLAG) == "1"

    def category_bypassed(self, category: str) -> bool:
        for flag in CATEGORY_BYPASS_FLAGS.get(category, ()):
            if flag in self.inline or self.environ.get(flag) == "1":
                return True
        return False


def split_inline_flags(command: str) -> tuple[frozenset[str], str]:
    """Separate leading ``NAME=value`` assignments from the command.

    Returns:
        ``(flags set to "1", remaining command)``
    """
    match = _INLINE_ASSIGNMENTS_RE.match(command)
    if not match:
        return frozenset(), command.strip()
    flags = frozenset(
        name for name, value in _ASSIGNMENT_RE.findall(match.group(1)) if value == "1"
    )
    return flags, command[match.end():].strip()


def normalize_command(command: str) -> str:
    """Reduce ``/usr/bin/git`` and ``/bin/rm`` style invocations to bare names."""
    return _ABSOLUTE_BIN_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}", command)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class SafetyPolicyEngine:
    """Classifies proposed commands and file edits."""

    def __init__(
        self,
        safe_patterns: tuple[SafePattern, ...] = DEFAULT_SAFE_PATTERNS,
        block_rules: tuple[BlockRule, ...] = DEFAULT_BLOCK_RULES,
        protected_branches: frozenset[str] = frozenset({"main", "master"}),
        repo_inspector: Callable[[str | Path], RepoInfo | None] = inspect_repo,
        environ: Mapping[str, str] | None = None,
        require_isolation: bool = False,
    ) -> None:
        self._safe_patterns = safe_patterns
        self._block_rules = block_rules
        self._protected = protected_branches
        self._inspect = repo_inspector
        self._environ = environ if environ is not None else os.environ
        self._require_isolation = require_isolation

    def _on_protected_branch(self, cwd: str) -> bool:
        repo = self._inspect(cwd or os.getcwd())
        return repo is not None and repo.branch in self._protected

    def evaluate(self, command: str, cwd: str = "") -> SafetyVerdict:
        """Decide whether *command* may run.

        Args:
            command: Raw shell command from the Bash tool call.
            cwd: Working directory of the session (for branch checks).
        """
        if not command or not command.strip():
            return SafetyVerdict.allow()

        inline, stripped = split_inline_flags(command)
        flags = BypassFlags(environ=self._environ, inline=inline)
        if flags.global_bypass:
            logger.info(f"Global bypass: {GLOBAL_BYPASS_FLAG}=1")
            return SafetyVerdict.allow()

        normalized = normalize_command(stripped)

        exempt: set[str] = set()
        for safe in self._safe_patterns:
            if not safe.matches(normalized):
                continue
            if safe.exempts is None:
                logger.debug(f"Allowed by safe pattern {safe.pattern_id}")
                return SafetyVerdict.allow()
            exempt |= safe.exempts

        for rule in self._block_rules:
            if rule.rule_id in exempt:
                continue
            if flags.category_bypassed(rule.category):
                continue
            if not rule.matches(normalized):
                continue
            if rule.requires_protected_branch and not self._on_protected_branch(cwd):
                continue
            logger.warning(f"Blocked command by rule {rule.rule_id}")
            return SafetyVerdict.block(
                reason=rule.render(command),
                rule_id=rule.rule_id,
                category=rule.category,
                violation=rule.violation,
            )

        return SafetyVerdict.allow()

    def evaluate_file_edit(self, file_path: str, cwd: str = "") -> SafetyVerdict:
        """Require edits to happen inside an isolated worktree (when enabled)."""
        if not self._require_isolation:
            return SafetyVerdict.allow()

        flags = BypassFlags(environ=self._environ)
        if flags.category_bypassed(CATEGORY_ISOLATION):
            return SafetyVerdict.allow()
        if self._environ.get("CONDUCTOR_ROOT_PATH"):
            logger.debug("Conductor session, edits are already isolated")
            return SafetyVerdict.allow()

        target = Path(file_path).parent if file_path else Path(cwd or os.getcwd())
        if not target.is_absolute() and cwd:
            target = Path(cwd) / target
        repo = self._inspect(target)
        if repo is None or repo.is_worktree:
            return SafetyVerdict.allow()

        branch = repo.branch or "(detached)"
        reason = (
            "WORKTREE REQUIRED: Direct modifications to the main project folder are not allowed.\n\n"
            f"You are currently in: {repo.root}\nBranch: {branch}\n\n{_WORKTREE_REMEDIATION}"
        )
        logger.warning(f"Blocked edit outside worktree (branch: {branch})")
        return SafetyVerdict.block(
            reason=reason,
            rule_id="require-worktree",
            category=CATEGORY_ISOLATION,
            violation=ViolationClass.MISSING_REQUIREMENT,
        )

    # =========================================================================
    # Hook handlers
    # =========================================================================

    def handle_bash(self, event: HookEvent) -> Decision:
        verdict = self.evaluate(event.command, cwd=event.cwd)
        if verdict.blocked:
            return Decision.block(verdict.reason or "")
        return Decision.allow()

    def handle_edit(self, event: HookEvent) -> Decision:
        verdict = self.evaluate_file_edit(event.file_path, cwd=event.cwd)
        if verdict.blocked:
            return Decision.block(verdict.reason or "")
        return Decision.allow()
