"""Core components for Jarvis Hooks."""

from jarvis_hooks.core.errors import (
    ConfigurationError,
    EntryNotFoundError,
    FileLockError,
    JarvisHooksError,
    RuleLoadError,
    StorageError,
    ValidationError,
)
from jarvis_hooks.core.models import (
    CompactionSnapshot,
    EventKind,
    HookCategory,
    HookHealth,
    MemoryTierEntry,
    PatternRecord,
    Priority,
    ReviewItem,
    ReviewStatus,
    SessionContext,
    SessionState,
    Tier,
    ViolationClass,
)

__all__ = [
    # Errors
    "ConfigurationError",
    "EntryNotFoundError",
    "FileLockError",
    "JarvisHooksError",
    "RuleLoadError",
    "StorageError",
    "ValidationError",
    # Models
    "CompactionSnapshot",
    "EventKind",
    "HookCategory",
    "HookHealth",
    "MemoryTierEntry",
    "PatternRecord",
    "Priority",
    "ReviewItem",
    "ReviewStatus",
    "SessionContext",
    "SessionState",
    "Tier",
    "ViolationClass",
]
