"""Service layer for Jarvis Hooks."""

from jarvis_hooks.services.archival import (
    ArchivalSweeper,
    DemotionPolicy,
    InactivityPolicy,
    SweepResult,
    TierMove,
    UsageSincePromotionPolicy,
    get_demotion_policy,
)
from jarvis_hooks.services.health import HookHealthTracker
from jarvis_hooks.services.memory_tiers import MemoryTierStore, Promoter, ReviewInbox
from jarvis_hooks.services.metrics import MetricsStore
from jarvis_hooks.services.pattern_ledger import Occurrence, PatternLedger
from jarvis_hooks.services.rules import PromotionPolicy, RuleStore
from jarvis_hooks.services.session_state import SessionContextStore, SessionStateStore
from jarvis_hooks.services.snapshot_store import SnapshotStore

__all__ = [
    # Archival
    "ArchivalSweeper",
    "DemotionPolicy",
    "InactivityPolicy",
    "SweepResult",
    "TierMove",
    "UsageSincePromotionPolicy",
    "get_demotion_policy",
    # Health
    "HookHealthTracker",
    # Memory
    "MemoryTierStore",
    "Promoter",
    "ReviewInbox",
    "Occurrence",
    "PatternLedger",
    "PromotionPolicy",
    # Session
    "SessionContextStore",
    "SessionStateStore",
    "SnapshotStore",
    # Rules
    "RuleStore",
    "MetricsStore",
]
