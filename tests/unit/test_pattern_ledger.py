"""Unit tests for jarvis_hooks.services.pattern_ledger."""

from __future__ import annotations

import pytest

from jarvis_hooks.adapters.memory_store import InMemoryStore
from jarvis_hooks.services.pattern_ledger import PatternLedger
from tests.helpers import FIXED_NOW, FixedClock


@pytest.fixture
def ledger(clock: FixedClock) -> PatternLedger:
    return PatternLedger(InMemoryStore(), clock=clock)


@pytest.mark.unit
class TestPatternLedger:
    def test_first_occurrence_creates_record(self, ledger: PatternLedger) -> None:
        occurrence = ledger.record_occurrence("ts:error_handling", promote_at=3)
        assert occurrence.record.count == 1
        assert occurrence.record.first_seen == FIXED_NOW
        assert occurrence.record.promoted_entry_id is None
        assert occurrence.newly_promoted is False

    def test_counts_increase_and_last_seen_moves(
        self, ledger: PatternLedger, clock: FixedClock
    ) -> None:
        ledger.record_occurrence("ts:error_handling")
        clock.advance(minutes=10)
        record = ledger.record_occurrence("ts:error_handling").record
        assert record.count == 2
        assert record.first_seen == FIXED_NOW
        assert record.last_seen == clock()

    def test_promotes_exactly_once_at_threshold(self, ledger: PatternLedger) -> None:
        results = [ledger.record_occurrence("ts:error_handling", promote_at=3) for _ in range(5)]
        assert [r.newly_promoted for r in results] == [False, False, True, False, False]
        entry_ids = {r.record.promoted_entry_id for r in results[2:]}
        assert len(entry_ids) == 1
        assert None not in entry_ids

    def test_no_promotion_without_threshold(self, ledger: PatternLedger) -> None:
        for _ in range(10):
            occurrence = ledger.record_occurrence("file_type:typescript", promote_at=None)
        assert occurrence.record.count == 10
        assert occurrence.record.promoted_entry_id is None

    def test_get_and_all(self, ledger: PatternLedger) -> None:
        ledger.record_occurrence("a")
        ledger.record_occurrence("b")
        ledger.record_occurrence("b")
        assert ledger.get("missing") is None
        record = ledger.get("b")
        assert record is not None
        assert record.count == 2
        assert set(ledger.all()) == {"a", "b"}

    def test_unreadable_record_restarts_count(self, clock: FixedClock) -> None:
        store = InMemoryStore()
        store.set("ts:error_handling", {"count": "lots"})
        ledger = PatternLedger(store, clock=clock)
        assert ledger.get("ts:error_handling") is None
        assert ledger.record_occurrence("ts:error_handling").record.count == 1
