"""stdin/stdout plumbing and input sanitization for the hook entrypoint.

Only standard-library imports, so these stay usable even if the rest of
the package fails to load.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from typing import Any, TextIO

logger = logging.getLogger(__name__)

MAX_STDIN_BYTES = 512 * 1024
MAX_SESSION_ID_LENGTH = 128

# ---------------------------------------------------------------------------
# Input sanitization
# ---------------------------------------------------------------------------

# Session IDs become state keys, so only filename-safe characters pass
_SESSION_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_WINDOWS_DEVICE_RE = re.compile(r"^(CON|NUL|PRN|AUX|COM[1-9]|LPT[1-9])(\..+)?$", re.IGNORECASE)


def sanitize_session_id(session_id: str) -> str:
    """Return *session_id* if it is safe to use as a key, else ``""``.

    A blank result means "no session": callers skip per-session state.
    """
    if not session_id or len(session_id) > MAX_SESSION_ID_LENGTH:
        return ""
    if not _SESSION_ID_RE.match(session_id) or _WINDOWS_DEVICE_RE.match(session_id):
        return ""
    return session_id


def validate_cwd(cwd: str) -> str:
    """Return *cwd* if it is an absolute path without traversal, else ``""``."""
    if not cwd or ".." in cwd.replace("\\", "/").split("/"):
        return ""
    if not os.path.isabs(cwd):
        return ""
    return cwd


# ---------------------------------------------------------------------------
# stdin / stdout
# ---------------------------------------------------------------------------


def read_stdin(stream: TextIO | None = None) -> dict[str, Any]:
    """Parse the event payload.

    Empty, oversized, malformed or non-object input all come back as ``{}``
    so the event degrades to "no match".
    """
    stream = stream if stream is not None else sys.stdin
    try:
        raw = stream.read(MAX_STDIN_BYTES + 1)
    except (OSError, ValueError) as e:
        logger.warning(f"Cannot read hook input: {e}")
        return {}
    if len(raw) > MAX_STDIN_BYTES:
        logger.warning(f"Hook input exceeds {MAX_STDIN_BYTES} bytes, ignoring")
        return {}
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Hook input is not valid JSON, ignoring")
        return {}
    return data if isinstance(data, dict) else {}


def write_response(response: dict[str, Any] | None, stream: TextIO | None = None) -> None:
    """Write one JSON response line (nothing at all for ``None``)."""
    if response is None:
        return
    stream = stream if stream is not None else sys.stdout
    try:
        stream.write(json.dumps(response) + "\n")
        stream.flush()
    except (OSError, ValueError) as e:
        # Host closed the pipe; nothing left to tell it
        logger.debug(f"Cannot write hook response: {e}")


def get_project_root(cwd: str = "") -> str:
    """``$CLAUDE_PROJECT_DIR`` if set, else *cwd* (may be ``""``)."""
    return os.environ.get("CLAUDE_PROJECT_DIR", "") or cwd
