"""Single-slot store for the pending compaction snapshot.

State machine: ``Empty -> Pending`` on save, ``Pending -> Empty`` on take.
A second save before a take overwrites the pending snapshot.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError

from jarvis_hooks.core.models import CompactionSnapshot
from jarvis_hooks.ports.storage import StateStoreProtocol

logger = logging.getLogger(__name__)

COMPACTION_NAMESPACE = "compaction"
_SLOT = "pending"


class SnapshotStore:
    def __init__(self, store: StateStoreProtocol) -> None:
        self._store = store

    def save(self, snapshot: CompactionSnapshot) -> None:
        self._store.set(_SLOT, snapshot.model_dump(mode="json"))

    def peek(self) -> CompactionSnapshot | None:
        """Return the pending snapshot without consuming it."""
        return self._parse(self._store.get(_SLOT))

    def take(self) -> CompactionSnapshot | None:
        """Consume the pending snapshot; only one caller ever receives it."""
        return self._parse(self._store.take(_SLOT))

    @staticmethod
    def _parse(raw: object) -> CompactionSnapshot | None:
        if raw is None:
            return None
        try:
            return CompactionSnapshot.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(f"Dropping unreadable compaction snapshot: {e.error_count()} errors")
            return None
