"""Generate the Claude Code hook configuration and the sweep crontab line.

The public API is ``generate_hook_config()``, whose ``hooks`` value goes
under the ``hooks`` key of ``.claude/settings.json``.
"""

from __future__ import annotations

import shlex
import sys
from dataclasses import dataclass
from typing import Any

# =============================================================================
# Hook table
# =============================================================================


@dataclass(frozen=True)
class HookEntry:
    """One event registration in the settings block."""

    event: str
    cli_name: str
    timeout: int
    matcher: str | None = None


# Host timeouts sit above the per-hook supervisor timeouts so the
# supervisor always answers first.
HOOK_ENTRIES: tuple[HookEntry, ...] = (
    HookEntry("SessionStart", "session-start", 10, matcher="startup|resume"),
    HookEntry("UserPromptSubmit", "user-prompt-submit", 10),
    HookEntry("PreToolUse", "pre-tool-use", 10, matcher="Bash|Edit|Write|MultiEdit|NotebookEdit"),
    HookEntry("PostToolUse", "post-tool-use", 15),
    HookEntry("PreCompact", "pre-compact", 15),
)

_DEV_COMMAND = "{python} -m jarvis_hooks"
_PROD_COMMAND = "jarvis-hooks"


def _resolve_python() -> str:
    """Resolve the current Python interpreter path."""
    return sys.executable


def base_command(mode: str = "prod", python_path: str = "") -> str:
    """Command prefix for every hook.

    Args:
        mode: ``"prod"`` for the installed console script, ``"dev"`` for
            ``python -m jarvis_hooks`` with the given interpreter.
        python_path: Interpreter for dev mode (defaults to ``sys.executable``).

    Raises:
        ValueError: If the mode is unknown.
    """
    if mode == "prod":
        return _PROD_COMMAND
    if mode == "dev":
        return _DEV_COMMAND.format(python=shlex.quote(python_path or _resolve_python()))
    raise ValueError(f"Unknown mode: {mode!r}. Valid modes: prod, dev")


def build_hooks(command: str) -> dict[str, list[dict[str, Any]]]:
    hooks: dict[str, list[dict[str, Any]]] = {}
    for entry in HOOK_ENTRIES:
        registration: dict[str, Any] = {
            "hooks": [
                {
                    "type": "command",
                    "command": f"{command} hook {entry.cli_name}",
                    "timeout": entry.timeout,
                }
            ],
        }
        if entry.matcher:
            registration = {"matcher": entry.matcher, **registration}
        hooks[entry.event] = [registration]
    return hooks


# =============================================================================
# Public facade
# =============================================================================


def generate_hook_config(*, mode: str = "prod", python_path: str = "") -> dict[str, Any]:
    """Generate the hook configuration.

    Args:
        mode: ``"prod"`` (console script) or ``"dev"`` (local interpreter).
        python_path: Interpreter for dev mode.

    Returns:
        Dict with ``hooks``, ``command`` and ``instructions``.

    Raises:
        ValueError: If the mode is unknown.
    """
    command = base_command(mode, python_path)
    return {
        "command": command,
        "hooks": build_hooks(command),
        "instructions": (
            "Add the 'hooks' config to your .claude/settings.json under the "
            "'hooks' key, then schedule the archival sweep (see `jarvis-hooks cron`)."
        ),
    }


def cron_line(schedule: str = "17 3 * * *", mode: str = "prod", python_path: str = "") -> str:
    """Crontab entry running the archival sweep (daily by default)."""
    return f"{schedule} {base_command(mode, python_path)} sweep"
