"""Test helpers shared across unit and integration tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jarvis_hooks.core.models import EventKind
from jarvis_hooks.hooks.models import HookEvent

FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Deterministic clock; call ``advance`` to move time forward."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_event(kind: EventKind, now: datetime = FIXED_NOW, **fields: Any) -> HookEvent:
    """Build a HookEvent from payload-style keyword arguments."""
    return HookEvent.from_payload(kind, fields, now=now)
