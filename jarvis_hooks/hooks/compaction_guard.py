"""Compaction guard: carry working state across a context compaction.

PreCompact writes a snapshot of the session's active skill and in-progress
task.  The next UserPromptSubmit consumes the snapshot (exactly once) and
injects recovery instructions ahead of any other context.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from jarvis_hooks.core.models import CompactionSnapshot
from jarvis_hooks.core.utils import Clock, to_aware_utc, truncate, utc_now
from jarvis_hooks.hooks.models import Decision, HookEvent, RecoveryContext
from jarvis_hooks.services.session_state import SessionContextStore
from jarvis_hooks.services.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


def find_task_title(task_dir: Path, max_age: timedelta, now: datetime) -> str | None:
    """Title of the most recently modified task file, if fresh enough.

    Looks at ``*.md`` files in *task_dir* and returns the first ``#``
    heading of the newest one modified within *max_age*.
    """
    try:
        candidates = [p for p in task_dir.glob("*.md") if p.is_file()]
    except OSError:
        return None

    newest: tuple[float, Path] | None = None
    for path in candidates:
        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue
        if newest is None or mtime > newest[0]:
            newest = (mtime, path)
    if newest is None:
        return None

    modified = datetime.fromtimestamp(newest[0], tz=timezone.utc)
    if to_aware_utc(now) - modified > max_age:
        return None

    try:
        with newest[1].open(encoding="utf-8") as f:
            for line in f:
                if line.startswith("# "):
                    return line[2:].strip() or None
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Cannot read task file {newest[1].name}: {e}")
    return None


class CompactionGuard:
    """Preserve on PreCompact, recover on the following prompt."""

    def __init__(
        self,
        snapshots: SnapshotStore,
        contexts: SessionContextStore,
        task_title: Callable[[HookEvent], str | None] | None = None,
        summary_max_chars: int = 200,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the guard.

        Args:
            snapshots: Single-slot snapshot store.
            contexts: Per-session context recorded by the session tracker.
            task_title: Fallback source for the task summary (task files).
            summary_max_chars: Maximum length of the preserved task summary.
            clock: Source of the compaction timestamp.
        """
        self._snapshots = snapshots
        self._contexts = contexts
        self._task_title = task_title
        self._max_chars = summary_max_chars
        self._clock = clock

    def _task_summary(self, event: HookEvent, recorded: str | None) -> str | None:
        for candidate in (recorded, event.custom_instructions):
            if candidate and candidate.strip():
                return truncate(candidate, self._max_chars)
        if self._task_title is not None:
            title = self._task_title(event)
            if title:
                return truncate(title, self._max_chars)
        return None

    def preserve(self, event: HookEvent) -> CompactionSnapshot:
        """Write the pending snapshot, even if there is nothing to preserve."""
        ctx = self._contexts.get(event.session_id)
        snapshot = CompactionSnapshot(
            active_skill=ctx.active_skill if ctx else None,
            in_progress_task=self._task_summary(event, ctx.task_summary if ctx else None),
            compaction_time=self._clock(),
            session_id=event.session_id,
            trigger=event.trigger,
        )
        self._snapshots.save(snapshot)
        logger.info(
            f"Preserved state before {event.trigger or 'unknown'} compaction "
            f"(skill={snapshot.active_skill or '-'})"
        )
        return snapshot

    def recover(self, event: HookEvent) -> RecoveryContext | None:
        """Consume the pending snapshot, if any."""
        snapshot = self._snapshots.take()
        if snapshot is None:
            return None
        logger.info("Recovering state after compaction")
        return RecoveryContext(
            active_skill=snapshot.active_skill,
            task_summary=snapshot.in_progress_task,
            compaction_time=snapshot.compaction_time,
        )

    def handle_pre_compact(self, event: HookEvent) -> Decision:
        self.preserve(event)
        return Decision.allow()

    def handle_prompt(self, event: HookEvent) -> Decision:
        recovery = self.recover(event)
        if recovery is None:
            return Decision.allow()
        return Decision.context(recovery.render())
