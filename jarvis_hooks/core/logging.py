"""Logging setup for hook and CLI processes.

stdout is the hook response channel, so records go to the hook log file
(or stderr when no file is configured), never to stdout.

Lines carry a ``[hook=...][session=...]`` tag while a hook is running and
have secrets (API keys, GitHub tokens, passwords) masked.  ``log_json``
switches to one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

LINE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(hook_tag)s%(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# (pattern, replacement) applied to every formatted line
SENSITIVE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"sk-[a-zA-Z0-9_-]{20,}"), "sk-***"),
    (re.compile(r"gh[pousr]_[A-Za-z0-9]{20,}"), "gh*_***"),
    (re.compile(r'(api[_-]?key)["\']?\s*[:=]\s*["\']?[\w-]+', re.I), r"\1=***"),
    (re.compile(r'(password|passwd)["\']?\s*[:=]\s*["\']?[^\s"\']+', re.I), r"\1=***"),
    (re.compile(r'(token)["\']?\s*[:=]\s*["\']?[\w.-]{12,}', re.I), r"\1=***"),
)

_current_hook: ContextVar[tuple[str, str] | None] = ContextVar("jarvis_current_hook", default=None)


@contextmanager
def hook_context(hook_name: str, session_id: str = "") -> Iterator[None]:
    """Tag log records emitted inside the block with the running hook."""
    token = _current_hook.set((hook_name, session_id))
    try:
        yield
    finally:
        _current_hook.reset(token)


def get_hook_context() -> tuple[str | None, str | None]:
    """Return ``(hook_name, session_id)`` for the current context, if any."""
    current = _current_hook.get()
    if current is None:
        return None, None
    hook_name, session_id = current
    return hook_name, session_id or None


def mask_sensitive(message: str) -> str:
    for pattern, replacement in SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


def _hook_tag() -> str:
    hook_name, session_id = get_hook_context()
    if not hook_name:
        return ""
    tag = f"[hook={hook_name}]"
    if session_id:
        tag += f"[session={session_id}]"
    return tag + " "


class SecureFormatter(logging.Formatter):
    """Masks secrets and tags lines with the running hook.

    The tag is exposed to the format string as ``%(hook_tag)s``; formats
    that don't use it get the tag in front of the message instead.
    """

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt or LINE_FORMAT, datefmt=datefmt or DATE_FORMAT)
        self._inline_tag = "%(hook_tag)" in (fmt or LINE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        tag = _hook_tag()
        record.hook_tag = tag
        line = super().format(record)
        if tag and not self._inline_tag:
            line = tag + line
        return mask_sensitive(line)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, secrets masked."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        hook_name, session_id = get_hook_context()
        if hook_name:
            entry["hook"] = hook_name
        if session_id:
            entry["session_id"] = session_id
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return mask_sensitive(json.dumps(entry))


def _open_handler(log_file: Path | None) -> logging.Handler:
    if log_file is None:
        return logging.StreamHandler(sys.stderr)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        print(f"jarvis-hooks: cannot open log file {log_file}: {e}", file=sys.stderr)
        return logging.StreamHandler(sys.stderr)


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    mask_sensitive: bool = True,
    log_file: Path | None = None,
) -> None:
    """Replace the root logger's handlers with a single configured one.

    Args:
        level: Logging level name.
        json_format: Emit JSON lines.
        mask_sensitive: Mask secrets (text format; JSON lines are always masked).
        log_file: Append here instead of writing to stderr.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = _open_handler(log_file)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(JSONFormatter())
    elif mask_sensitive:
        handler.setFormatter(SecureFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", DATE_FORMAT)
        )
    root.addHandler(handler)
