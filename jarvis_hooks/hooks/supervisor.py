"""Fail-open supervisor around every hook handler.

A handler runs on a daemon thread and the caller waits at most ``timeout``
seconds for it.  Whatever goes wrong (timeout, exception, a bogus return
value) the outcome is an ``allow`` decision, so a broken hook can slow
the assistant down by its timeout but can never block or hang it.
A decision marked ``degraded`` is kept as is but reported as a failed run.

Failures of optional hooks are logged at DEBUG; everything else at
WARNING (timeouts) or ERROR (crashes).
"""

from __future__ import annotations

import contextvars
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from jarvis_hooks.core.logging import hook_context
from jarvis_hooks.core.models import HookCategory
from jarvis_hooks.hooks.models import Decision

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    OK = "ok"
    DEGRADED = "degraded"  # finished, but reported a swallowed state failure
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class HandlerOutcome:
    """Result of one supervised handler run."""

    decision: Decision
    status: OutcomeStatus
    elapsed: float
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status is not OutcomeStatus.OK


def run_supervised(
    name: str,
    fn: Callable[[], Decision | None],
    timeout: float,
    category: HookCategory = HookCategory.STANDARD,
    session_id: str = "",
) -> HandlerOutcome:
    """Run *fn* under a timeout, turning every failure into ``allow``.

    Args:
        name: Hook name (for logs).
        fn: Zero-argument callable returning a Decision (or None for allow).
        timeout: Seconds to wait before abandoning the handler.
        category: Hook category; optional hooks log failures at DEBUG.
        session_id: Session ID included in the log context.

    Returns:
        HandlerOutcome with the decision to use.
    """
    box: dict[str, object] = {}

    def _target() -> None:
        with hook_context(name, session_id):
            try:
                box["result"] = fn()
            except Exception as e:
                box["error"] = e

    ctx = contextvars.copy_context()
    thread = threading.Thread(target=ctx.run, args=(_target,), name=f"hook-{name}", daemon=True)
    fail_level = logging.DEBUG if category is HookCategory.OPTIONAL else None

    start = time.monotonic()
    thread.start()
    thread.join(timeout)
    elapsed = time.monotonic() - start

    if thread.is_alive():
        logger.log(
            fail_level or logging.WARNING,
            f"Hook {name} timed out after {timeout:.1f}s, allowing",
        )
        return HandlerOutcome(
            Decision.allow(), OutcomeStatus.TIMEOUT, elapsed, f"timeout after {timeout}s"
        )

    error = box.get("error")
    if isinstance(error, BaseException):
        logger.log(
            fail_level or logging.ERROR,
            f"Hook {name} failed, allowing: {type(error).__name__}: {error}",
            exc_info=error if fail_level is None else None,
        )
        return HandlerOutcome(
            Decision.allow(), OutcomeStatus.ERROR, elapsed, f"{type(error).__name__}: {error}"
        )

    result = box.get("result")
    if result is None:
        return HandlerOutcome(Decision.allow(), OutcomeStatus.OK, elapsed)
    if not isinstance(result, Decision):
        logger.log(
            fail_level or logging.ERROR,
            f"Hook {name} returned {type(result).__name__} instead of a Decision, allowing",
        )
        return HandlerOutcome(
            Decision.allow(), OutcomeStatus.ERROR, elapsed, "invalid handler result"
        )

    if result.degraded:
        logger.log(
            fail_level or logging.WARNING,
            f"Hook {name} ran degraded: {result.degraded}",
        )
        return HandlerOutcome(result, OutcomeStatus.DEGRADED, elapsed, result.degraded)

    logger.debug(f"Hook {name} finished in {elapsed * 1000:.0f}ms ({result.decision.value})")
    return HandlerOutcome(result, OutcomeStatus.OK, elapsed)
