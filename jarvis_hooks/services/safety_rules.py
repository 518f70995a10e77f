"""Command safety tables.

Ordered data consumed by the safety policy engine
(:mod:`jarvis_hooks.hooks.safety_policy`).  Both tables are matched against
the *normalized* command: inline ``NAME=1`` bypass prefixes stripped and
absolute ``git``/``rm`` paths reduced to the bare command name.

Safe patterns come in two flavours:

- **unscoped** (``exempts is None``): a match allows the command outright.
- **scoped**: a match only exempts the block rules named in ``exempts``;
  every other rule is still evaluated.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from jarvis_hooks.core.models import ViolationClass

DESTRUCTIVE_HEADLINE = "DESTRUCTIVE COMMAND BLOCKED"
DEFAULT_REMEDIATION = (
    "If this operation is truly needed, ask the user to run it manually "
    "or set CLAUDE_ALLOW_DESTRUCTIVE=1"
)

# ---------------------------------------------------------------------------
# Categories and their bypass flags
# ---------------------------------------------------------------------------

CATEGORY_DESTRUCTIVE = "destructive"
CATEGORY_MAIN_PUSH = "main_push"
CATEGORY_MAIN_MERGE = "main_merge"
CATEGORY_BASH_WRITE = "bash_write"
CATEGORY_DIRECT_SUBMIT = "direct_submit"
CATEGORY_ISOLATION = "isolation"
CATEGORY_COMMIT_FORMAT = "commit_format"
CATEGORY_TYPE_SAFETY = "type_safety"

GLOBAL_BYPASS_FLAG = "CLAUDE_ALLOW_DESTRUCTIVE"
"""Set in the environment, skips every command check."""

CATEGORY_BYPASS_FLAGS: dict[str, tuple[str, ...]] = {
    CATEGORY_DESTRUCTIVE: ("CLAUDE_ALLOW_DESTRUCTIVE",),
    CATEGORY_MAIN_PUSH: ("JARVIS_ALLOW_MAIN_PUSH",),
    CATEGORY_MAIN_MERGE: ("JARVIS_ALLOW_MAIN_MERGE",),
    CATEGORY_BASH_WRITE: ("CLAUDE_ALLOW_BASH_WRITE",),
    CATEGORY_DIRECT_SUBMIT: ("CLAUDE_ALLOW_DIRECT_SUBMIT", "CLAUDE_SUBMIT_PR_SKILL"),
    CATEGORY_ISOLATION: ("CLAUDE_ALLOW_MAIN_MODIFICATIONS",),
    CATEGORY_COMMIT_FORMAT: ("CLAUDE_SKIP_COMMIT_FORMAT",),
    CATEGORY_TYPE_SAFETY: ("CLAUDE_ALLOW_ANY",),
}
"""Flags that suppress one category, from the environment or an inline prefix.

``CLAUDE_ALLOW_DESTRUCTIVE`` appears here too: as an inline prefix it only
covers the destructive category.
"""


# ---------------------------------------------------------------------------
# Rule types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SafePattern:
    """A known-safe command shape."""

    pattern_id: str
    pattern: re.Pattern[str]
    exempts: frozenset[str] | None = None
    unless: re.Pattern[str] | None = None

    def matches(self, command: str) -> bool:
        if not self.pattern.search(command):
            return False
        return self.unless is None or not self.unless.search(command)


@dataclass(frozen=True)
class BlockRule:
    """A destructive or out-of-process command shape."""

    rule_id: str
    pattern: re.Pattern[str]
    category: str
    violation: ViolationClass
    reason: str
    unless: re.Pattern[str] | None = None
    requires_protected_branch: bool = False
    headline: str = DESTRUCTIVE_HEADLINE
    remediation: str = DEFAULT_REMEDIATION
    # Extra check on a command the pattern already matched
    predicate: Callable[[str], bool] | None = None

    def matches(self, command: str) -> bool:
        if not self.pattern.search(command):
            return False
        if self.unless is not None and self.unless.search(command):
            return False
        return self.predicate is None or self.predicate(command)

    def render(self, command: str) -> str:
        return (
            f"{self.headline}\n\nReason: {self.reason}\n\n"
            f"Command: {command}\n\n{self.remediation}"
        )


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

_RM_RECURSIVE = r"\brm\s+(?:.*\s)?-[a-zA-Z]*[rRfF]"
_TMP_PREFIX = r"(?:/tmp/|/var/tmp/|\$TMPDIR|\$\{TMPDIR)"
_TMP_TARGET = r"\s" + _TMP_PREFIX
# An rm operand (up to the next shell separator) that is neither a flag nor a temp path
_RM_NON_TMP_OPERAND = r"\brm\s+(?:[^\s;&|]+\s+)*?(?!-|" + _TMP_PREFIX + r")[^\s;&|]"

DEFAULT_SAFE_PATTERNS: tuple[SafePattern, ...] = (
    SafePattern("checkout-new-branch", re.compile(r"\bgit\s+checkout\s+-b\s+")),
    SafePattern("checkout-orphan", re.compile(r"\bgit\s+checkout\s+--orphan\s+")),
    SafePattern(
        "restore-staged",
        re.compile(r"\bgit\s+restore\s+(?:--staged|-S)\s+"),
        unless=re.compile(r"(?:--worktree|\s-W\b)"),
    ),
    SafePattern(
        "clean-dry-run",
        re.compile(r"\bgit\s+clean\s+(?:.*\s)?(?:-[a-zA-Z]*n[a-zA-Z]*|--dry-run)\b"),
        exempts=frozenset({"clean-force"}),
    ),
    SafePattern(
        "rm-temp-dir",
        re.compile(_RM_RECURSIVE + r".*" + _TMP_TARGET),
        exempts=frozenset({"rm-root-or-home", "rm-recursive"}),
        unless=re.compile(_RM_NON_TMP_OPERAND),
    ),
    SafePattern(
        "force-with-lease",
        re.compile(r"\bgit\s+push\s+.*--force-with-lease"),
        exempts=frozenset({"force-push"}),
    ),
)

_BASH_WRITE_REMEDIATION = "To bypass (if truly needed): CLAUDE_ALLOW_BASH_WRITE=1"
_SUBMIT_REMEDIATION = (
    "To submit your PR properly:\n"
    "1. Invoke the submit-pr skill\n"
    "2. Follow the guided submission process\n\n"
    "Or set CLAUDE_ALLOW_DIRECT_SUBMIT=1 to bypass this check."
)

# ---------------------------------------------------------------------------
# Commit messages
# ---------------------------------------------------------------------------

CONVENTIONAL_COMMIT_TYPES: tuple[str, ...] = (
    "feat", "fix", "docs", "style", "refactor", "perf",
    "test", "chore", "ci", "build", "revert", "merge",
)
_CONVENTIONAL_SUBJECT_RE = re.compile(
    rf"^(?:{'|'.join(CONVENTIONAL_COMMIT_TYPES)})(?:\([a-z0-9-]+\))?!?: .+"
)
_HEREDOC_RE = re.compile(
    r"<<-?\s*(['\"]?)(\w+)\1[^\n]*\n(.*?)^\s*\2\s*$", re.DOTALL | re.MULTILINE
)
_QUOTED_MESSAGE_RE = re.compile(r"(?:\s-[a-zA-Z]*m|\s--message=?)\s*([\"'])(.+?)\1", re.DOTALL)


def commit_subject(command: str) -> str | None:
    """First line of the message passed to ``git commit``, if it can be read.

    A heredoc (``-m "$(cat <<'EOF' ... EOF)"``) wins over a quoted ``-m``
    argument.  Returns None when no message is recognizable.
    """
    if "<<" in command:
        heredoc = _HEREDOC_RE.search(command)
        if heredoc is None:
            return None
        body = heredoc.group(3)
    else:
        quoted = _QUOTED_MESSAGE_RE.search(command)
        if quoted is None:
            return None
        body = quoted.group(2)

    for line in body.splitlines():
        if line.strip():
            return line.strip()
    return None


def is_unconventional_commit(command: str) -> bool:
    subject = commit_subject(command)
    return subject is not None and _CONVENTIONAL_SUBJECT_RE.match(subject) is None


_COMMIT_FORMAT_REASON = (
    "Commit messages must use <type>(<scope>): <description>\n\n"
    f"Valid types: {', '.join(CONVENTIONAL_COMMIT_TYPES)}\n\n"
    "Examples:\n"
    "  feat(auth): add OAuth2 login flow\n"
    "  fix(api): handle null user in profile endpoint\n"
    "  docs: update README installation steps"
)


def build_block_rules(protected_branches: Iterable[str] = ("main", "master")) -> tuple[BlockRule, ...]:
    """Build the ordered blocklist for a set of protected branch names."""
    branches = sorted({b for b in protected_branches if b})
    branch_names = "/".join(branches) or "protected branches"
    branch_alt = "|".join(re.escape(b) for b in branches) or r"(?!)"

    return (
        BlockRule(
            "checkout-discard",
            re.compile(r"\bgit\s+checkout\s+--\s+"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git checkout -- discards uncommitted changes permanently. Use 'git stash' first.",
        ),
        BlockRule(
            "checkout-ref-path",
            re.compile(r"\bgit\s+checkout\s+\S+\s+--\s+"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git checkout <ref> -- <path> overwrites working tree. Use 'git stash' first.",
        ),
        BlockRule(
            "restore-discard",
            re.compile(r"\bgit\s+restore\s+"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git restore discards uncommitted changes. Use 'git stash' or 'git diff' first.",
            unless=re.compile(r"\bgit\s+restore\s+(?:--staged|-S)\b"),
        ),
        BlockRule(
            "restore-worktree",
            re.compile(r"\bgit\s+restore\s+(?:.*\s)?(?:--worktree|-W)\b"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git restore --worktree discards uncommitted changes permanently.",
        ),
        BlockRule(
            "reset-hard",
            re.compile(r"\bgit\s+reset\s+(?:.*\s)?--hard\b"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git reset --hard destroys uncommitted changes. Use 'git stash' first.",
        ),
        BlockRule(
            "reset-merge",
            re.compile(r"\bgit\s+reset\s+(?:.*\s)?--merge\b"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git reset --merge can lose uncommitted changes.",
        ),
        BlockRule(
            "clean-force",
            re.compile(r"\bgit\s+clean\s+(?:.*\s)?-[a-zA-Z]*f"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git clean -f removes untracked files permanently. Review with 'git clean -n' first.",
        ),
        BlockRule(
            "push-protected-branch",
            re.compile(rf"\bgit\s+push\b.*?[\s:+](?:{branch_alt})(?=\s|$)"),
            CATEGORY_MAIN_PUSH,
            ViolationClass.DIVERGENT_BEHAVIOR,
            f"Direct push to {branch_names} is blocked. Create a PR instead.\n\n"
            "To bypass (emergency only): JARVIS_ALLOW_MAIN_PUSH=1 git push ...",
        ),
        BlockRule(
            "merge-protected-branch",
            re.compile(r"\bgit\s+merge\s+"),
            CATEGORY_MAIN_MERGE,
            ViolationClass.DIVERGENT_BEHAVIOR,
            f"Merging to {branch_names} is blocked. Use /submit-pr instead.\n\n"
            "To bypass (emergency only): JARVIS_ALLOW_MAIN_MERGE=1 git merge ...",
            requires_protected_branch=True,
        ),
        BlockRule(
            "force-push",
            re.compile(r"\bgit\s+push\s+(?:.*\s)?(?:--force\b(?!-)|-f\b)"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "Force push can destroy remote history. Use --force-with-lease if necessary.",
        ),
        BlockRule(
            "branch-force-delete",
            re.compile(r"\bgit\s+branch\s+(?:.*\s)?-D\b"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git branch -D force-deletes without merge check. Use -d for safety.",
        ),
        BlockRule(
            "stash-drop",
            re.compile(r"\bgit\s+stash\s+drop\b"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git stash drop permanently deletes stashed changes. "
            "List stashes with 'git stash list' first.",
        ),
        BlockRule(
            "stash-clear",
            re.compile(r"\bgit\s+stash\s+clear\b"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "git stash clear permanently deletes ALL stashed changes.",
        ),
        BlockRule(
            "rm-root-or-home",
            re.compile(_RM_RECURSIVE + r".*\s[/~]"),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "rm -rf on root/home paths is EXTREMELY DANGEROUS. Ask the user to run it manually.",
        ),
        BlockRule(
            "rm-recursive",
            re.compile(_RM_RECURSIVE),
            CATEGORY_DESTRUCTIVE,
            ViolationClass.DESTRUCTIVE_ACTION,
            "rm -rf is destructive and requires human approval. "
            "Explain what you want to delete.",
        ),
        BlockRule(
            "bash-redirect",
            re.compile(r"(?<!>)>[^>&0-9]"),
            CATEGORY_BASH_WRITE,
            ViolationClass.DIVERGENT_BEHAVIOR,
            "Bash file writes are blocked. Use the Write or Edit tool instead.\n\n"
            "Detected: output redirection (>)",
            unless=re.compile(r">\s*/dev/null"),
            remediation=_BASH_WRITE_REMEDIATION,
        ),
        BlockRule(
            "bash-append",
            re.compile(r">>"),
            CATEGORY_BASH_WRITE,
            ViolationClass.DIVERGENT_BEHAVIOR,
            "Bash file writes are blocked. Use the Write or Edit tool instead.\n\n"
            "Detected: append redirection (>>)",
            unless=re.compile(r">>\s*/dev/null"),
            remediation=_BASH_WRITE_REMEDIATION,
        ),
        BlockRule(
            "bash-tee",
            re.compile(r"\btee\b"),
            CATEGORY_BASH_WRITE,
            ViolationClass.DIVERGENT_BEHAVIOR,
            "Bash file writes are blocked. Use the Write or Edit tool instead.\n\n"
            "Detected: tee command",
            unless=re.compile(r"\btee\s+/dev/null"),
            remediation=_BASH_WRITE_REMEDIATION,
        ),
        BlockRule(
            "graphite-submit",
            re.compile(r"\bgt\s+submit\b"),
            CATEGORY_DIRECT_SUBMIT,
            ViolationClass.DIVERGENT_BEHAVIOR,
            "Use the 'submit-pr' skill instead of running 'gt submit' directly.",
            headline="DIRECT SUBMIT BLOCKED",
            remediation=_SUBMIT_REMEDIATION,
        ),
        BlockRule(
            "gh-pr-create",
            re.compile(r"\bgh\s+pr\s+create\b"),
            CATEGORY_DIRECT_SUBMIT,
            ViolationClass.DIVERGENT_BEHAVIOR,
            "Use the 'submit-pr' skill instead of running 'gh pr create' directly.",
            headline="DIRECT PR CREATION BLOCKED",
            remediation=_SUBMIT_REMEDIATION,
        ),
        BlockRule(
            "hub-pull-request",
            re.compile(r"\bhub\s+pull-request\b"),
            CATEGORY_DIRECT_SUBMIT,
            ViolationClass.DIVERGENT_BEHAVIOR,
            "Use the 'submit-pr' skill instead of running 'hub pull-request' directly.",
            headline="DIRECT PR CREATION BLOCKED",
            remediation=_SUBMIT_REMEDIATION,
        ),
        BlockRule(
            "commit-message-format",
            re.compile(r"\bgit\s+commit\b.*?(?:\s-[a-zA-Z]*m|\s--message)\b", re.DOTALL),
            CATEGORY_COMMIT_FORMAT,
            ViolationClass.DIVERGENT_BEHAVIOR,
            _COMMIT_FORMAT_REASON,
            headline="COMMIT MESSAGE FORMAT INVALID",
            remediation="To bypass: CLAUDE_SKIP_COMMIT_FORMAT=1 git commit ...",
            predicate=is_unconventional_commit,
        ),
    )


DEFAULT_BLOCK_RULES: tuple[BlockRule, ...] = build_block_rules()
