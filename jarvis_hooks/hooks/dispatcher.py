"""Unified dispatcher for all hook events.

Reads one event from stdin, runs the registered hooks for it and writes the
response to stdout.  Accepts Claude Code (PascalCase), camelCase and CLI
(kebab-case) event names.

CLI usage::

    echo '{"prompt":"fix the failing test","session_id":"abc"}' | jarvis-hooks hook user-prompt-submit
    echo '{"tool_name":"Bash","tool_input":{"command":"git status"}}' | jarvis-hooks hook PreToolUse

Fail-open: any error outside a hook handler is logged and the event is
allowed.  Exit code is 1 only for a block.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any, TextIO

from pydantic import ValidationError as PydanticValidationError

from jarvis_hooks.config import Settings, get_settings
from jarvis_hooks.core.errors import ConfigurationError
from jarvis_hooks.core.logging import configure_logging
from jarvis_hooks.core.models import EventKind
from jarvis_hooks.factory import ServiceFactory
from jarvis_hooks.hooks.hook_helpers import (
    get_project_root,
    read_stdin,
    sanitize_session_id,
    validate_cwd,
    write_response,
)
from jarvis_hooks.hooks.models import Decision, HookEvent
from jarvis_hooks.ports.storage import StateBackendProtocol

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_EVENT_ALIASES: dict[str, EventKind] = {
    # PascalCase (Claude Code canonical)
    "SessionStart": EventKind.SESSION_START,
    "UserPromptSubmit": EventKind.USER_PROMPT_SUBMIT,
    "PreToolUse": EventKind.PRE_TOOL_USE,
    "PostToolUse": EventKind.POST_TOOL_USE,
    "PreCompact": EventKind.PRE_COMPACT,
    # camelCase
    "sessionStart": EventKind.SESSION_START,
    "userPromptSubmit": EventKind.USER_PROMPT_SUBMIT,
    "preToolUse": EventKind.PRE_TOOL_USE,
    "postToolUse": EventKind.POST_TOOL_USE,
    "preCompact": EventKind.PRE_COMPACT,
    # kebab-case (CLI)
    "session-start": EventKind.SESSION_START,
    "user-prompt-submit": EventKind.USER_PROMPT_SUBMIT,
    "pre-tool-use": EventKind.PRE_TOOL_USE,
    "post-tool-use": EventKind.POST_TOOL_USE,
    "pre-compact": EventKind.PRE_COMPACT,
}

EVENT_NAMES: tuple[str, ...] = tuple(k for k in _EVENT_ALIASES if "-" in k)


def normalize_event(raw: str) -> EventKind | None:
    """Map an event name to its kind, or ``None`` if unrecognized."""
    return _EVENT_ALIASES.get(raw)


def _load_settings() -> Settings:
    """Settings for a hook process; invalid configuration falls back to defaults."""
    try:
        return get_settings()
    except (PydanticValidationError, ValueError) as e:
        logger.warning(f"Invalid configuration, using defaults: {e}")
        return Settings.model_construct()


# ---------------------------------------------------------------------------
# Centralized validation
# ---------------------------------------------------------------------------


def _validate_common(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize session_id and cwd in place."""
    session_id = data.get("session_id", "")
    data["session_id"] = sanitize_session_id(session_id) if isinstance(session_id, str) else ""

    cwd = data.get("cwd", "")
    data["cwd"] = validate_cwd(cwd) if isinstance(cwd, str) else ""
    return data


# ---------------------------------------------------------------------------
# Primary dispatch function (testable surface)
# ---------------------------------------------------------------------------


def run_hook(
    event_name: str,
    data: dict[str, Any],
    settings: Settings | None = None,
    backend: StateBackendProtocol | None = None,
    environ: Mapping[str, str] | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Run every hook for one event and write the response.

    Args:
        event_name: Event name in any supported spelling.
        data: Parsed stdin JSON.
        settings: Settings override (defaults to the process settings).
        backend: State backend override (defaults to JSON files).
        environ: Environment used for bypass flags.
        stdout: Response stream (defaults to sys.stdout).

    Returns:
        Process exit code: 1 if blocked, else 0.
    """
    kind = normalize_event(event_name)
    if kind is None:
        logger.warning(f"Unknown hook event: {event_name}")
        return 0

    settings = settings or _load_settings()
    data = _validate_common(data)
    event = HookEvent.from_payload(kind, data)

    factory = ServiceFactory(
        settings,
        backend=backend,
        project_root=get_project_root(cwd=event.cwd),
        environ=environ if environ is not None else os.environ,
    )
    runtime = factory.create_runtime(factory.create_all())

    decision = runtime.dispatch(event)
    write_response(decision.to_response(kind), stdout)

    # Background hooks run after the response is flushed
    if runtime.has_background(event):
        runtime.run_background(event)
    return decision.exit_code


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(
    event_name: str,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Hook process entry point.  Never raises.

    Args:
        event_name: Event name from the command line.
        stdin: Input stream (defaults to sys.stdin).
        stdout: Response stream (defaults to sys.stdout).
        environ: Environment (defaults to os.environ).

    Returns:
        Process exit code.
    """
    try:
        settings = _load_settings()
        configure_logging(
            level=settings.log_level,
            json_format=settings.log_json,
            log_file=settings.resolved_log_file,
        )
        data = read_stdin(stdin)
        return run_hook(event_name, data, settings=settings, environ=environ, stdout=stdout)
    except ConfigurationError as e:
        logger.error(f"Hook {event_name} misconfigured, allowing: {e}")
    except Exception as e:
        # Fail-open: whatever broke, the assistant must not be blocked
        logger.error(f"Hook {event_name} crashed, allowing: {e}", exc_info=True)

    kind = normalize_event(event_name)
    if kind is not None:
        write_response(Decision.allow().to_response(kind), stdout)
    return 0
