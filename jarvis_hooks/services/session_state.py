"""Per-session stores: recommended skills and the current working context."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from jarvis_hooks.core.models import SessionContext, SessionState
from jarvis_hooks.core.utils import Clock, utc_now
from jarvis_hooks.ports.storage import StateStoreProtocol

logger = logging.getLogger(__name__)

SESSION_STATE_NAMESPACE = "session_state"
SESSION_CONTEXT_NAMESPACE = "session_context"


def _load_state(raw: Any) -> SessionState | None:
    if raw is None:
        return None
    try:
        return SessionState.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning(f"Discarding unreadable session state: {e.error_count()} errors")
        return None


class SessionStateStore:
    """Tracks which skills were already recommended in each session.

    Expiry is decided at read time: a record whose ``last_activity`` is
    older than the expiry window counts as empty.  Nothing is ever deleted
    for being stale.
    """

    def __init__(
        self,
        store: StateStoreProtocol,
        expiry: timedelta = timedelta(hours=4),
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._expiry = expiry
        self._clock = clock

    def _is_live(self, state: SessionState, now: datetime) -> bool:
        return now - state.last_activity <= self._expiry

    def recommended(self, session_id: str) -> frozenset[str]:
        """Skills already recommended in a live session."""
        if not session_id:
            return frozenset()
        state = _load_state(self._store.get(session_id))
        if state is None or not self._is_live(state, self._clock()):
            return frozenset()
        return frozenset(state.recommended)

    def claim(self, session_id: str, skill_ids: Iterable[str]) -> list[str]:
        """Record *skill_ids* as recommended and return the ones that were new.

        The check and the write happen under one lock, so two concurrent
        prompts in the same session can't both recommend the same skill.
        Order of *skill_ids* is preserved in the result.
        """
        candidates = list(dict.fromkeys(skill_ids))
        if not session_id:
            return candidates

        now = self._clock()
        fresh: list[str] = []

        def _claim(raw: Any) -> dict[str, Any]:
            state = _load_state(raw)
            if state is None or not self._is_live(state, now):
                state = SessionState(recommended=[], last_activity=now)
            seen = set(state.recommended)
            for skill_id in candidates:
                if skill_id not in seen:
                    fresh.append(skill_id)
                    seen.add(skill_id)
                    state.recommended.append(skill_id)
            state.last_activity = now
            return state.model_dump(mode="json")

        self._store.update(session_id, _claim)
        return fresh

    def touch(self, session_id: str) -> None:
        """Extend a session's activity window without recommending anything."""
        if session_id:
            self.claim(session_id, ())


class SessionContextStore:
    """What each session is working on, read by the compaction guard."""

    def __init__(self, store: StateStoreProtocol, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    def get(self, session_id: str) -> SessionContext | None:
        if not session_id:
            return None
        raw = self._store.get(session_id)
        if raw is None:
            return None
        try:
            return SessionContext.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(f"Discarding unreadable session context: {e.error_count()} errors")
            return None

    def record(
        self,
        session_id: str,
        active_skill: str | None = None,
        task_summary: str | None = None,
    ) -> None:
        """Merge non-empty fields into the session's context."""
        if not session_id:
            return
        now = self._clock()

        def _merge(raw: Any) -> dict[str, Any]:
            try:
                ctx = SessionContext.model_validate(raw) if raw else SessionContext()
            except PydanticValidationError:
                ctx = SessionContext()
            if active_skill:
                ctx.active_skill = active_skill
            if task_summary:
                ctx.task_summary = task_summary
            ctx.updated_at = now
            return ctx.model_dump(mode="json")

        self._store.update(session_id, _merge)
