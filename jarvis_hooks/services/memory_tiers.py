"""Memory tier store and review inbox.

Each tier is its own namespace (``memory_hot``, ``memory_warm``,
``memory_cold``) keyed by entry ID.  An entry lives in exactly one tier;
``move`` writes the destination before removing the source so a crash in
between leaves a duplicate rather than a lost entry, and ``get`` prefers
the colder copy.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from jarvis_hooks.core.errors import EntryNotFoundError
from jarvis_hooks.core.models import (
    MemoryTierEntry,
    PatternRecord,
    ReviewItem,
    ReviewStatus,
    Tier,
)
from jarvis_hooks.core.utils import Clock, utc_now
from jarvis_hooks.ports.storage import StateBackendProtocol, StateStoreProtocol
from jarvis_hooks.services.rules import PromotionPolicy

logger = logging.getLogger(__name__)

TIER_NAMESPACES: dict[Tier, str] = {
    Tier.HOT: "memory_hot",
    Tier.WARM: "memory_warm",
    Tier.COLD: "memory_cold",
}
REVIEW_INBOX_NAMESPACE = "review_inbox"

# Colder tiers win when an interrupted move left two copies
_LOOKUP_ORDER = (Tier.COLD, Tier.WARM, Tier.HOT)


def _parse_entries(raw: dict[str, Any], tier: Tier) -> list[MemoryTierEntry]:
    entries = []
    for entry_id, value in raw.items():
        try:
            entries.append(MemoryTierEntry.model_validate(value))
        except PydanticValidationError:
            logger.warning(f"Skipping unreadable {tier.value} entry {entry_id}")
    return entries


class MemoryTierStore:
    """Hot/warm/cold tiers of promoted learnings."""

    def __init__(self, backend: StateBackendProtocol, clock: Clock = utc_now) -> None:
        self._tiers: dict[Tier, StateStoreProtocol] = {
            tier: backend.open(namespace) for tier, namespace in TIER_NAMESPACES.items()
        }
        self._clock = clock

    def add(self, entry: MemoryTierEntry) -> None:
        self._tiers[entry.tier].set(entry.id, entry.model_dump(mode="json"))

    def list(self, tier: Tier) -> list[MemoryTierEntry]:
        """Entries in *tier*, oldest promotion first."""
        entries = _parse_entries(self._tiers[tier].items(), tier)
        return sorted(entries, key=lambda e: (e.promoted_at, e.id))

    def get(self, entry_id: str) -> MemoryTierEntry | None:
        for tier in _LOOKUP_ORDER:
            raw = self._tiers[tier].get(entry_id)
            if raw is None:
                continue
            try:
                return MemoryTierEntry.model_validate(raw)
            except PydanticValidationError:
                logger.warning(f"Unreadable {tier.value} entry {entry_id}")
        return None

    def has_source(self, pattern_key: str) -> bool:
        return any(
            entry.source_pattern_key == pattern_key
            for tier in Tier
            for entry in self.list(tier)
        )

    def counts(self) -> dict[Tier, int]:
        return {tier: len(self._tiers[tier].items()) for tier in Tier}

    def move(self, entry_id: str, to: Tier, reason: str | None = None) -> MemoryTierEntry:
        """Move an entry to another tier.

        Moving to cold records ``demoted_at`` and ``demotion_reason``.

        Raises:
            EntryNotFoundError: If no tier holds *entry_id*.
        """
        entry = self.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)

        source = entry.tier
        if source is to:
            return entry

        now = self._clock()
        update: dict[str, Any] = {"tier": to, "tier_changed_at": now}
        if to is Tier.COLD:
            update["demoted_at"] = now
            update["demotion_reason"] = reason
        moved = entry.model_copy(update=update)

        self._tiers[to].set(entry_id, moved.model_dump(mode="json"))
        self._tiers[source].delete(entry_id)
        logger.info(f"Moved {entry.source_pattern_key} {source.value} -> {to.value}")
        return moved

    def set_review_status(self, entry_id: str, status: ReviewStatus) -> MemoryTierEntry:
        entry = self.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        updated = entry.model_copy(update={"review_status": status})
        self._tiers[entry.tier].set(entry_id, updated.model_dump(mode="json"))
        return updated


class ReviewInbox:
    """Promoted learnings waiting for a human to confirm or reject them."""

    def __init__(self, store: StateStoreProtocol) -> None:
        self._store = store

    def enqueue(self, entry: MemoryTierEntry) -> ReviewItem:
        item = ReviewItem(
            id=entry.id,
            pattern_key=entry.source_pattern_key,
            description=entry.description,
            frequency=entry.count_at_promotion,
            confidence=entry.confidence,
            tier=entry.tier,
            created_at=entry.promoted_at,
        )
        self._store.set(item.id, item.model_dump(mode="json"))
        return item

    def items(self) -> list[ReviewItem]:
        items = []
        for item_id, raw in self._store.items().items():
            try:
                items.append(ReviewItem.model_validate(raw))
            except PydanticValidationError:
                logger.warning(f"Skipping unreadable review item {item_id}")
        return sorted(items, key=lambda i: (i.created_at, i.id))

    def get(self, item_id: str) -> ReviewItem | None:
        raw = self._store.get(item_id)
        return ReviewItem.model_validate(raw) if raw is not None else None

    def set_status(self, item_id: str, status: ReviewStatus) -> None:
        def _set(raw: Any) -> Any:
            if raw is None:
                return None
            raw["status"] = status.value
            return raw

        self._store.update(item_id, _set)

    def remove(self, item_id: str) -> bool:
        return self._store.delete(item_id)


class Promoter:
    """Turns a ledger record that crossed the threshold into a hot entry."""

    def __init__(
        self,
        tiers: MemoryTierStore,
        inbox: ReviewInbox,
        policy: PromotionPolicy,
        clock: Clock = utc_now,
    ) -> None:
        self._tiers = tiers
        self._inbox = inbox
        self._policy = policy
        self._clock = clock

    def promote(self, record: PatternRecord, description: str = "") -> MemoryTierEntry | None:
        """Create the hot-tier entry for *record* and queue it for review.

        Safe to call again for a record whose earlier promotion failed
        half-way.

        Returns:
            The new entry, or ``None`` if the pattern already has one.
        """
        if record.promoted_entry_id is None:
            return None
        if self._tiers.get(record.promoted_entry_id) is not None:
            return None
        if self._tiers.has_source(record.pattern_key):
            logger.debug(f"{record.pattern_key} already has a tier entry")
            return None

        entry = MemoryTierEntry(
            id=record.promoted_entry_id,
            tier=Tier.HOT,
            source_pattern_key=record.pattern_key,
            description=description,
            confidence=self._policy.confidence(record.count),
            count_at_promotion=record.count,
            promoted_at=self._clock(),
        )
        # Inbox first: enqueue is keyed by entry ID, so a retry after a failed
        # tier write overwrites rather than duplicates
        self._inbox.enqueue(entry)
        self._tiers.add(entry)
        logger.info(
            f"Promoted {record.pattern_key} to hot tier "
            f"(count={record.count}, confidence={entry.confidence:.2f})"
        )
        return entry
