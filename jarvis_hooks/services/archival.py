"""Archival sweep: moves learnings between memory tiers.

Runs on its own schedule (``jarvis-hooks sweep``, usually from cron), never
inside a hook invocation.

Sweep order:
    1. Rejected entries are archived to cold and leave the review inbox.
    2. Reviewed hot entries are promoted to warm.
    3. Hot and warm entries the demotion policy flags are demoted to cold.
    4. If hot still holds more than ``hot_capacity`` entries, the oldest
       overflow to cold.

Demotion is a strategy so the rule can change without touching the sweep::

    policy = get_demotion_policy("inactivity", settings)
    sweeper = ArchivalSweeper(tiers, inbox, ledger, policy)
    result = sweeper.run(dry_run=True)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from jarvis_hooks.config import Settings
from jarvis_hooks.core.models import MemoryTierEntry, PatternRecord, ReviewStatus, Tier
from jarvis_hooks.core.utils import Clock, utc_now
from jarvis_hooks.services.memory_tiers import MemoryTierStore, ReviewInbox
from jarvis_hooks.services.pattern_ledger import PatternLedger

logger = logging.getLogger(__name__)

REASON_INACTIVITY = "inactivity"
REASON_UNUSED = "unused_since_promotion"
REASON_CAPACITY = "capacity_overflow"
REASON_REJECTED = "rejected"
REASON_REVIEWED = "reviewed"


# =============================================================================
# Sweep Result
# =============================================================================


@dataclass
class TierMove:
    entry_id: str
    pattern_key: str
    from_tier: Tier
    to_tier: Tier
    reason: str


@dataclass
class SweepResult:
    """What a sweep did (or would do, for a dry run)."""

    moves: list[TierMove] = field(default_factory=list)
    dry_run: bool = False

    def _count(self, to_tier: Tier, reason: str | None = None) -> int:
        return sum(
            1 for m in self.moves if m.to_tier is to_tier and (reason is None or m.reason == reason)
        )

    @property
    def promoted(self) -> int:
        return self._count(Tier.WARM)

    @property
    def demoted(self) -> int:
        return self._count(Tier.COLD)

    @property
    def overflowed(self) -> int:
        return self._count(Tier.COLD, REASON_CAPACITY)


# =============================================================================
# Demotion Policies
# =============================================================================


def last_activity(entry: MemoryTierEntry, record: PatternRecord | None) -> datetime:
    """Most recent sign of life: the pattern's last occurrence or the promotion."""
    candidates = [entry.promoted_at]
    if entry.tier_changed_at is not None:
        candidates.append(entry.tier_changed_at)
    if record is not None:
        candidates.append(record.last_seen)
    return max(candidates)


class DemotionPolicy(ABC):
    """Decides whether an active-tier entry should be archived."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the policy name."""
        ...

    @abstractmethod
    def demotion_reason(
        self,
        entry: MemoryTierEntry,
        record: PatternRecord | None,
        now: datetime,
    ) -> str | None:
        """Return why *entry* should move to cold, or None to keep it."""
        ...


class InactivityPolicy(DemotionPolicy):
    """Demote entries whose pattern hasn't been seen for ``max_idle``."""

    def __init__(self, max_idle: timedelta = timedelta(days=30)) -> None:
        self.max_idle = max_idle

    @property
    def name(self) -> str:
        return "inactivity"

    def demotion_reason(
        self,
        entry: MemoryTierEntry,
        record: PatternRecord | None,
        now: datetime,
    ) -> str | None:
        if now - last_activity(entry, record) > self.max_idle:
            return REASON_INACTIVITY
        return None


class UsageSincePromotionPolicy(DemotionPolicy):
    """Demote idle entries that were barely used after being promoted.

    An idle entry whose pattern recurred at least ``min_uses`` times after
    promotion is kept; it has proven itself.
    """

    def __init__(self, max_idle: timedelta = timedelta(days=30), min_uses: int = 1) -> None:
        self.max_idle = max_idle
        self.min_uses = min_uses

    @property
    def name(self) -> str:
        return "usage_since_promotion"

    def demotion_reason(
        self,
        entry: MemoryTierEntry,
        record: PatternRecord | None,
        now: datetime,
    ) -> str | None:
        if now - last_activity(entry, record) <= self.max_idle:
            return None
        uses = record.count - entry.count_at_promotion if record is not None else 0
        if uses >= self.min_uses:
            return None
        return REASON_UNUSED


def get_demotion_policy(name: str, settings: Settings) -> DemotionPolicy:
    """Build the demotion policy named in settings.

    Raises:
        ValueError: If the policy name is unknown.
    """
    max_idle = timedelta(days=settings.cold_demotion_days)
    if name == "inactivity":
        return InactivityPolicy(max_idle)
    if name == "usage_since_promotion":
        return UsageSincePromotionPolicy(max_idle, settings.min_uses_since_promotion)
    raise ValueError(f"Unknown demotion policy: {name}. Valid policies: inactivity, usage_since_promotion")


# =============================================================================
# Sweeper
# =============================================================================


class ArchivalSweeper:
    """Plans and applies tier moves in one pass."""

    def __init__(
        self,
        tiers: MemoryTierStore,
        inbox: ReviewInbox,
        ledger: PatternLedger,
        policy: DemotionPolicy,
        promotion_threshold: int = 3,
        hot_capacity: int = 20,
        clock: Clock = utc_now,
    ) -> None:
        self._tiers = tiers
        self._inbox = inbox
        self._ledger = ledger
        self._policy = policy
        self._threshold = promotion_threshold
        self._hot_capacity = hot_capacity
        self._clock = clock

    def _ready_for_warm(self, entry: MemoryTierEntry, record: PatternRecord | None) -> bool:
        if entry.review_status is ReviewStatus.CONFIRMED:
            return True
        if entry.review_status is ReviewStatus.VALIDATED:
            count = record.count if record is not None else entry.count_at_promotion
            return count >= self._threshold
        return False

    def plan(self, now: datetime | None = None) -> list[TierMove]:
        """Work out every move without touching the stores."""
        now = now or self._clock()
        records = self._ledger.all()
        rejected_in_inbox = {
            item.id for item in self._inbox.items() if item.status is ReviewStatus.REJECTED
        }

        hot = self._tiers.list(Tier.HOT)
        warm = self._tiers.list(Tier.WARM)
        moves: list[TierMove] = []

        def _move(entry: MemoryTierEntry, to: Tier, reason: str) -> None:
            moves.append(TierMove(entry.id, entry.source_pattern_key, entry.tier, to, reason))

        def _rejected(entry: MemoryTierEntry) -> bool:
            return entry.review_status is ReviewStatus.REJECTED or entry.id in rejected_in_inbox

        # 1. Rejected
        remaining_hot: list[MemoryTierEntry] = []
        for entry in hot:
            if _rejected(entry):
                _move(entry, Tier.COLD, REASON_REJECTED)
            else:
                remaining_hot.append(entry)
        remaining_warm: list[MemoryTierEntry] = []
        for entry in warm:
            if _rejected(entry):
                _move(entry, Tier.COLD, REASON_REJECTED)
            else:
                remaining_warm.append(entry)
        warm = remaining_warm

        # 2. Hot -> warm
        still_hot: list[MemoryTierEntry] = []
        for entry in remaining_hot:
            if self._ready_for_warm(entry, records.get(entry.source_pattern_key)):
                _move(entry, Tier.WARM, REASON_REVIEWED)
                warm.append(entry.model_copy(update={"tier": Tier.WARM, "tier_changed_at": now}))
            else:
                still_hot.append(entry)

        # 3. Policy demotion
        kept_hot: list[MemoryTierEntry] = []
        for entry in still_hot:
            reason = self._policy.demotion_reason(entry, records.get(entry.source_pattern_key), now)
            if reason:
                _move(entry, Tier.COLD, reason)
            else:
                kept_hot.append(entry)
        for entry in warm:
            reason = self._policy.demotion_reason(entry, records.get(entry.source_pattern_key), now)
            if reason:
                _move(entry, Tier.COLD, reason)

        # 4. Hot capacity, oldest promotion first
        overflow = len(kept_hot) - self._hot_capacity
        if overflow > 0:
            for entry in sorted(kept_hot, key=lambda e: (e.promoted_at, e.id))[:overflow]:
                _move(entry, Tier.COLD, REASON_CAPACITY)

        return moves

    def run(self, now: datetime | None = None, dry_run: bool = False) -> SweepResult:
        moves = self.plan(now)
        result = SweepResult(moves=moves, dry_run=dry_run)
        if dry_run:
            return result

        for move in moves:
            self._tiers.move(move.entry_id, move.to_tier, reason=move.reason)
            if move.to_tier is Tier.COLD or move.reason == REASON_REVIEWED:
                self._inbox.remove(move.entry_id)

        logger.info(
            f"Archival sweep ({self._policy.name}): {result.promoted} promoted to warm, "
            f"{result.demoted} demoted to cold ({result.overflowed} over capacity)"
        )
        return result
