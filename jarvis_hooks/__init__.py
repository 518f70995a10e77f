"""Jarvis Hooks - hook orchestration and adaptive memory for Claude Code."""

__version__ = "0.1.0"

# Re-export core components for convenience
from jarvis_hooks.config import Settings, get_settings
from jarvis_hooks.core import (
    CompactionSnapshot,
    ConfigurationError,
    EventKind,
    HookCategory,
    # Errors
    JarvisHooksError,
    # Models
    MemoryTierEntry,
    PatternRecord,
    Priority,
    ReviewStatus,
    StorageError,
    Tier,
    ValidationError,
)

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "JarvisHooksError",
    "ConfigurationError",
    "StorageError",
    "ValidationError",
    # Models
    "CompactionSnapshot",
    "EventKind",
    "HookCategory",
    "MemoryTierEntry",
    "PatternRecord",
    "Priority",
    "ReviewStatus",
    "Tier",
]
