"""Pattern ledger: occurrence counters per pattern key."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from jarvis_hooks.core.models import PatternRecord
from jarvis_hooks.core.utils import Clock, utc_now
from jarvis_hooks.ports.storage import StateStoreProtocol

logger = logging.getLogger(__name__)

PATTERN_LEDGER_NAMESPACE = "pattern_ledger"


@dataclass(frozen=True)
class Occurrence:
    """Result of recording one pattern occurrence."""

    record: PatternRecord
    newly_promoted: bool  # True exactly once per key: the call that crossed the threshold


class PatternLedger:
    """Frequency counters keyed by pattern identifier.

    Counts only ever go up.  The promoted entry ID is claimed inside the same
    locked update that crosses the threshold, so a key is promoted at most
    once no matter how many processes race on it.
    """

    def __init__(self, store: StateStoreProtocol, clock: Clock = utc_now) -> None:
        self._store = store
        self._clock = clock

    def get(self, pattern_key: str) -> PatternRecord | None:
        raw = self._store.get(pattern_key)
        if raw is None:
            return None
        try:
            return PatternRecord.model_validate(raw)
        except PydanticValidationError as e:
            logger.warning(f"Unreadable ledger record for {pattern_key}: {e.error_count()} errors")
            return None

    def all(self) -> dict[str, PatternRecord]:
        records: dict[str, PatternRecord] = {}
        for key, raw in self._store.items().items():
            try:
                records[key] = PatternRecord.model_validate(raw)
            except PydanticValidationError:
                logger.warning(f"Skipping unreadable ledger record for {key}")
        return records

    def record_occurrence(self, pattern_key: str, promote_at: int | None = None) -> Occurrence:
        """Increment the counter for *pattern_key*.

        Args:
            pattern_key: Pattern identifier, e.g. ``ts:error_handling``.
            promote_at: Count at which the record should claim a promoted
                entry ID.  ``None`` disables promotion.

        Returns:
            The updated record and whether this call promoted it.
        """
        now = self._clock()
        promoted = False

        def _bump(raw: Any) -> dict[str, Any]:
            nonlocal promoted
            record: PatternRecord | None = None
            if raw is not None:
                try:
                    record = PatternRecord.model_validate(raw)
                except PydanticValidationError:
                    logger.warning(f"Resetting unreadable ledger record for {pattern_key}")
            if record is None:
                record = PatternRecord(pattern_key=pattern_key, count=1, first_seen=now, last_seen=now)
            else:
                record.count += 1
                record.last_seen = max(now, record.first_seen)

            if (
                promote_at is not None
                and record.promoted_entry_id is None
                and record.count >= promote_at
            ):
                record.promoted_entry_id = str(uuid.uuid4())
                promoted = True
            return record.model_dump(mode="json")

        stored = self._store.update(pattern_key, _bump)
        return Occurrence(record=PatternRecord.model_validate(stored), newly_promoted=promoted)
