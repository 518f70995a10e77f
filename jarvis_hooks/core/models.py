"""Persisted data models for Jarvis Hooks.

Everything in this module round-trips through a state namespace as plain
JSON (``model_dump(mode="json")`` / ``model_validate``).  Transient hook
I/O types live in :mod:`jarvis_hooks.hooks.models`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from jarvis_hooks.core.utils import utc_now


class EventKind(str, Enum):
    """Lifecycle events the host emits."""

    SESSION_START = "SessionStart"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    PRE_COMPACT = "PreCompact"


class Priority(str, Enum):
    """Skill rule priority buckets, highest first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @property
    def heading(self) -> str:
        return _PRIORITY_HEADINGS[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

_PRIORITY_HEADINGS = {
    Priority.CRITICAL: "CRITICAL SKILLS (REQUIRED):",
    Priority.HIGH: "RECOMMENDED SKILLS:",
    Priority.MEDIUM: "SUGGESTED SKILLS:",
    Priority.LOW: "OPTIONAL SKILLS:",
}


class Tier(str, Enum):
    """Memory tiers."""

    HOT = "hot"  # Freshly promoted, awaiting review
    WARM = "warm"  # Confirmed learnings injected at session start
    COLD = "cold"  # Archived


class ReviewStatus(str, Enum):
    """Review state of a promoted learning."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    VALIDATED = "validated"
    REJECTED = "rejected"


class HookCategory(str, Enum):
    """How much a hook matters when the system is degraded."""

    ESSENTIAL = "essential"  # Safety and recovery; survive degradation level 2
    STANDARD = "standard"
    OPTIONAL = "optional"  # Best effort; failures logged at debug


class ViolationClass(str, Enum):
    """Why a policy block was issued."""

    MISSING_REQUIREMENT = "missing_requirement"
    DIVERGENT_BEHAVIOR = "divergent_behavior"
    DESTRUCTIVE_ACTION = "destructive_action"


class PatternRecord(BaseModel):
    """Occurrence counter for one pattern key."""

    pattern_key: str = Field(..., min_length=1)
    count: int = Field(default=1, ge=1)
    first_seen: datetime = Field(default_factory=utc_now)
    last_seen: datetime = Field(default_factory=utc_now)
    promoted_entry_id: str | None = Field(
        default=None, description="Hot-tier entry created for this pattern, set once"
    )

    @model_validator(mode="after")
    def _check_order(self) -> PatternRecord:
        if self.first_seen > self.last_seen:
            raise ValueError("first_seen must not be after last_seen")
        return self


class MemoryTierEntry(BaseModel):
    """A promoted learning living in exactly one tier."""

    id: str = Field(..., description="Unique identifier (UUID)")
    tier: Tier = Field(default=Tier.HOT)
    source_pattern_key: str
    description: str = ""
    confidence: float = Field(..., ge=0.0, le=1.0)
    count_at_promotion: int = Field(..., ge=1)
    promoted_at: datetime = Field(default_factory=utc_now)
    review_status: ReviewStatus = Field(default=ReviewStatus.PENDING)
    tier_changed_at: datetime | None = None
    demoted_at: datetime | None = None
    demotion_reason: str | None = None


class ReviewItem(BaseModel):
    """A promoted learning waiting in the review inbox."""

    id: str
    type: str = "code_pattern"
    pattern_key: str
    description: str = ""
    frequency: int = Field(..., ge=1)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    status: ReviewStatus = Field(default=ReviewStatus.PENDING)
    tier: Tier = Field(default=Tier.HOT)
    created_at: datetime = Field(default_factory=utc_now)


class CompactionSnapshot(BaseModel):
    """State preserved across a context compaction."""

    active_skill: str | None = None
    in_progress_task: str | None = None
    compaction_time: datetime = Field(default_factory=utc_now)
    session_id: str = ""
    trigger: str = ""


class SessionState(BaseModel):
    """Skills already recommended in one session."""

    recommended: list[str] = Field(default_factory=list)
    last_activity: datetime = Field(default_factory=utc_now)


class SessionContext(BaseModel):
    """What a session is currently working on (feeds compaction snapshots)."""

    active_skill: str | None = None
    task_summary: str | None = None
    updated_at: datetime = Field(default_factory=utc_now)


class HookHealth(BaseModel):
    """Failure bookkeeping for the degradation ladder."""

    consecutive_failures: dict[str, int] = Field(default_factory=dict)
    total_failures: int = Field(default=0, ge=0)
    last_failure_at: datetime | None = None
    last_failed_hook: str | None = None
