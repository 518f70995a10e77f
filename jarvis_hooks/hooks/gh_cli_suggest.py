"""GitHub CLI tips for Bash commands.

Runs on PreToolUse for Bash as an optional hook and never blocks: a
``gh api`` or ``gh pr`` command gets a short note suggesting the ``gh-cli``
skill.  ``gh pr create`` is left to the direct-submit rule of the safety
policy.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from jarvis_hooks.hooks.models import Decision, HookEvent

logger = logging.getLogger(__name__)

GH_CLI_BYPASS_FLAGS: tuple[str, ...] = ("GH_CLI_SKILL_LOADED", "JARVIS_SKIP_HOOKS")

_LOAD_HINT = 'To load: Use the Skill tool with skill: "gh-cli"'


@dataclass(frozen=True)
class CliTip:
    tip_id: str
    pattern: re.Pattern[str]
    text: str


# First match wins, so the GraphQL tip precedes the generic ``gh api`` one
DEFAULT_TIPS: tuple[CliTip, ...] = (
    CliTip(
        "gh-api-graphql",
        re.compile(r"\bgh\s+api\s+graphql\b"),
        "TIP: GraphQL with gh cli has escaping gotchas.\n\n"
        "Common issue: $ in queries gets interpreted by bash.\n\n"
        "Solutions in gh-cli skill:\n"
        "- Hardcode values in query\n"
        "- Use -F flag for variables\n"
        "- Escape $ as \\$\n\n" + _LOAD_HINT,
    ),
    CliTip(
        "gh-api",
        re.compile(r"\bgh\s+api\b"),
        "TIP: Load the gh-cli skill for GitHub API patterns.\n\n"
        "The gh-cli skill covers:\n"
        "- Correct REST endpoints for PR comments/replies\n"
        "- GraphQL variable escaping (common bash issue)\n"
        "- Thread resolution patterns\n\n"
        f"{_LOAD_HINT}\n\n"
        "This is a suggestion only - your command will still execute.",
    ),
    CliTip(
        "gh-pr",
        re.compile(r"\bgh\s+pr\s+(?:view|list|checks|comment|review|merge|close|reopen|edit)\b"),
        "TIP: The gh-cli skill has patterns for PR operations.\n\n"
        "Covers: comment threads, review replies, status checks.\n\n" + _LOAD_HINT,
    ),
)


def suggest(command: str, tips: tuple[CliTip, ...] = DEFAULT_TIPS) -> CliTip | None:
    for tip in tips:
        if tip.pattern.search(command):
            return tip
    return None


class GhCliAdvisor:
    def __init__(self, tips: tuple[CliTip, ...] = DEFAULT_TIPS) -> None:
        self._tips = tips

    def handle(self, event: HookEvent) -> Decision:
        tip = suggest(event.command, self._tips)
        if tip is None:
            return Decision.allow()
        logger.info(f"Suggesting gh-cli skill ({tip.tip_id})")
        return Decision.context(tip.text)
