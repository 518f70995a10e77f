"""Hook health tracking and graceful degradation.

Consecutive failures per hook drive a degradation level::

    Level 0: all hooks run
    Level 1: optional hooks skipped
    Level 2: only essential hooks run
    Level 3: no hooks run (every event is allowed)

The level is derived from the worst consecutive-failure count against the
configured thresholds.  A successful run resets that hook's counter; a new
session resets everything.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from jarvis_hooks.core.models import HookCategory, HookHealth
from jarvis_hooks.core.utils import Clock, utc_now
from jarvis_hooks.ports.storage import StateStoreProtocol

logger = logging.getLogger(__name__)

HEALTH_NAMESPACE = "health"
_KEY = "hooks"

_LEVEL_NAMES = {
    0: "normal",
    1: "reduced (optional hooks disabled)",
    2: "minimal (essential hooks only)",
    3: "disabled (all hooks bypassed)",
}


def _load(raw: Any) -> HookHealth:
    if raw is None:
        return HookHealth()
    try:
        return HookHealth.model_validate(raw)
    except PydanticValidationError:
        logger.warning("Resetting unreadable hook health record")
        return HookHealth()


def level_name(level: int) -> str:
    return _LEVEL_NAMES.get(level, "unknown")


class HookHealthTracker:
    """Persists hook failures and answers "should this hook run?"."""

    def __init__(
        self,
        store: StateStoreProtocol,
        thresholds: tuple[int, int, int] = (3, 5, 10),
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._thresholds = thresholds
        self._clock = clock

    @property
    def warn_after(self) -> int:
        """Consecutive failures after which a required hook raises a warning."""
        return self._thresholds[0]

    def snapshot(self) -> HookHealth:
        return _load(self._store.get(_KEY))

    def level(self, health: HookHealth | None = None) -> int:
        health = health or self.snapshot()
        worst = max(health.consecutive_failures.values(), default=0)
        level = 0
        for index, threshold in enumerate(self._thresholds, start=1):
            if worst >= threshold:
                level = index
        return level

    def allows(self, category: HookCategory, level: int) -> bool:
        if level >= 3:
            return False
        if level == 2:
            return category is HookCategory.ESSENTIAL
        if level == 1:
            return category is not HookCategory.OPTIONAL
        return True

    def consecutive_failures(self, hook_name: str) -> int:
        return self.snapshot().consecutive_failures.get(hook_name, 0)

    def record_failure(self, hook_name: str) -> int:
        """Count a timeout or crash.

        Returns:
            The hook's consecutive failure count after this failure.
        """
        now = self._clock()
        count = 0

        def _fail(raw: Any) -> dict[str, Any]:
            nonlocal count
            health = _load(raw)
            count = health.consecutive_failures.get(hook_name, 0) + 1
            health.consecutive_failures[hook_name] = count
            health.total_failures += 1
            health.last_failure_at = now
            health.last_failed_hook = hook_name
            return health.model_dump(mode="json")

        self._store.update(_KEY, _fail)
        return count

    def record_success(self, hook_name: str) -> None:
        # Skip the locked write in the common case of an already-healthy hook
        if self.consecutive_failures(hook_name) == 0:
            return

        def _ok(raw: Any) -> dict[str, Any]:
            health = _load(raw)
            health.consecutive_failures.pop(hook_name, None)
            return health.model_dump(mode="json")

        self._store.update(_KEY, _ok)
        logger.info(f"Hook {hook_name} recovered")

    def reset(self) -> None:
        if self._store.delete(_KEY):
            logger.info("Hook health reset")

    def warning_for(self, hook_name: str) -> str:
        """User-facing warning once a required hook keeps failing."""
        count = self.consecutive_failures(hook_name)
        level = self.level()
        return (
            f"Jarvis hook '{hook_name}' has failed {count} times in a row and is "
            f"being skipped (fail-open). Degradation level {level}: {level_name(level)}. "
            "Check the hook log, then run `jarvis-hooks reset-health`."
        )
