"""Unit tests for the SessionStart, session tracker and metrics hooks."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from jarvis_hooks.adapters.memory_store import InMemoryStateBackend, InMemoryStore
from jarvis_hooks.core.errors import StorageError
from jarvis_hooks.core.models import EventKind, MemoryTierEntry, Tier
from jarvis_hooks.hooks.metrics import MetricsCapture
from jarvis_hooks.hooks.session_start import SessionStartContext
from jarvis_hooks.hooks.session_tracker import SessionTracker, in_progress_todo, skill_name
from jarvis_hooks.services.memory_tiers import MemoryTierStore
from jarvis_hooks.services.metrics import MetricsStore
from jarvis_hooks.services.session_state import SessionContextStore
from tests.helpers import FIXED_NOW, FixedClock, make_event


def _warm(entry_id: str, confidence: float, description: str = "") -> MemoryTierEntry:
    return MemoryTierEntry(
        id=entry_id,
        tier=Tier.WARM,
        source_pattern_key=f"ts:{entry_id}",
        description=description,
        confidence=confidence,
        count_at_promotion=3,
        promoted_at=FIXED_NOW,
    )


# =============================================================================
# SessionStart
# =============================================================================


@pytest.mark.unit
class TestSessionStartContext:
    def test_nothing_to_say(self, backend: InMemoryStateBackend) -> None:
        hook = SessionStartContext(MemoryTierStore(backend))
        assert hook.build() == ""
        event = make_event(EventKind.SESSION_START, source="startup")
        assert hook.handle(event).additional_context == ""

    def test_warm_learnings_sorted_by_confidence(self, backend: InMemoryStateBackend) -> None:
        tiers = MemoryTierStore(backend)
        tiers.add(_warm("low", 0.3, "Wrap fetches in try/catch"))
        tiers.add(_warm("high", 0.9))
        text = SessionStartContext(tiers).build()
        lines = text.splitlines()
        assert lines[0] == "<JARVIS_SESSION_CONTEXT>"
        assert lines[-1] == "</JARVIS_SESSION_CONTEXT>"
        assert lines[1] == "Active learnings:"
        assert lines[2] == "- ts:high (confidence 0.90)"
        assert lines[3] == "- Wrap fetches in try/catch (confidence 0.30)"

    def test_max_learnings(self, backend: InMemoryStateBackend) -> None:
        tiers = MemoryTierStore(backend)
        for i in range(5):
            tiers.add(_warm(f"e{i}", 0.1 * (i + 1)))
        text = SessionStartContext(tiers, max_learnings=2).build()
        assert text.count("\n- ") == 2

    def test_hot_entries_not_listed(self, backend: InMemoryStateBackend) -> None:
        tiers = MemoryTierStore(backend)
        tiers.add(_warm("x", 0.5).model_copy(update={"tier": Tier.HOT}))
        assert SessionStartContext(tiers).build() == ""

    def test_previous_degradation_warning(self, backend: InMemoryStateBackend) -> None:
        hook = SessionStartContext(MemoryTierStore(backend), previous_level=lambda: 2)
        text = hook.build()
        assert "level 2: minimal (essential hooks only)" in text
        assert "Hook health has been reset." in text

    @pytest.mark.parametrize("source,fires", [("startup", True), ("resume", True), ("clear", False), ("compact", False)])
    def test_sources(self, backend: InMemoryStateBackend, source: str, fires: bool) -> None:
        hook = SessionStartContext(MemoryTierStore(backend), previous_level=lambda: 1)
        event = make_event(EventKind.SESSION_START, source=source)
        assert bool(hook.handle(event).additional_context) is fires

    def test_unreadable_tier_still_warns(self) -> None:
        tiers = MagicMock(spec=MemoryTierStore)
        tiers.list.side_effect = StorageError("locked")
        text = SessionStartContext(tiers, previous_level=lambda: 1).build()
        assert "Warning: hooks were running degraded" in text


# =============================================================================
# Session tracker
# =============================================================================


@pytest.mark.unit
class TestSessionTracker:
    def test_skill_name(self) -> None:
        assert skill_name({"skill": "tdd"}) == "tdd"
        assert skill_name({"command": " debugging "}) == "debugging"
        assert skill_name({}) is None

    def test_in_progress_todo(self) -> None:
        todos = {
            "todos": [
                {"content": "Write tests", "status": "completed"},
                {"content": "Fix login bug", "status": "in_progress"},
                {"content": "Deploy", "status": "in_progress"},
            ]
        }
        assert in_progress_todo(todos) == "Fix login bug"
        assert in_progress_todo({"todos": [{"status": "pending", "content": "x"}]}) is None
        assert in_progress_todo({"todos": "nope"}) is None

    def test_in_progress_todo_active_form(self) -> None:
        todos = {"todos": [{"status": "in_progress", "activeForm": "Fixing login bug"}]}
        assert in_progress_todo(todos) == "Fixing login bug"

    def test_records_skill_and_task(self, clock: FixedClock) -> None:
        contexts = SessionContextStore(InMemoryStore(), clock=clock)
        tracker = SessionTracker(contexts)
        tracker.handle(
            make_event(EventKind.POST_TOOL_USE, session_id="s1", tool_name="Skill", tool_input={"skill": "tdd"})
        )
        tracker.handle(
            make_event(
                EventKind.POST_TOOL_USE,
                session_id="s1",
                tool_name="TodoWrite",
                tool_input={"todos": [{"content": "Fix login bug", "status": "in_progress"}]},
            )
        )
        ctx = contexts.get("s1")
        assert ctx is not None
        assert ctx.active_skill == "tdd"
        assert ctx.task_summary == "Fix login bug"

    def test_failed_tool_ignored(self, clock: FixedClock) -> None:
        contexts = SessionContextStore(InMemoryStore(), clock=clock)
        SessionTracker(contexts).track(
            make_event(
                EventKind.POST_TOOL_USE,
                session_id="s1",
                tool_name="Skill",
                tool_input={"skill": "tdd"},
                tool_response={"success": False},
            )
        )
        assert contexts.get("s1") is None

    def test_blank_session_ignored(self, clock: FixedClock) -> None:
        store = InMemoryStore()
        SessionTracker(SessionContextStore(store, clock=clock)).track(
            make_event(EventKind.POST_TOOL_USE, tool_name="Skill", tool_input={"skill": "tdd"})
        )
        assert store.items() == {}


# =============================================================================
# Metrics
# =============================================================================


@pytest.mark.unit
class TestMetricsCapture:
    def test_counts_tools_and_skills(self) -> None:
        metrics = MetricsStore(InMemoryStore())
        capture = MetricsCapture(metrics)
        capture.handle(make_event(EventKind.POST_TOOL_USE, tool_name="Edit"))
        capture.handle(make_event(EventKind.POST_TOOL_USE, tool_name="Edit"))
        capture.handle(
            make_event(EventKind.POST_TOOL_USE, tool_name="Skill", tool_input={"skill": "tdd"})
        )
        day = metrics.day("2024-01-15")
        assert day["tools"] == {"Edit": 2, "Skill": 1}
        assert day["skills"] == {"tdd": 1}
        assert day["total"] == 3

    def test_non_skill_tool_has_no_skill(self) -> None:
        metrics = MetricsStore(InMemoryStore())
        MetricsCapture(metrics).handle(
            make_event(EventKind.POST_TOOL_USE, tool_name="Bash", tool_input={"command": "ls"})
        )
        assert "skills" not in metrics.day("2024-01-15")

    def test_missing_tool_name_ignored(self) -> None:
        metrics = MetricsStore(InMemoryStore())
        MetricsCapture(metrics).handle(make_event(EventKind.POST_TOOL_USE))
        assert metrics.day("2024-01-15") == {}
