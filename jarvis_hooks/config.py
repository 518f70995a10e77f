"""Configuration system for Jarvis Hooks."""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Jarvis Hooks Configuration."""

    # Storage
    state_dir: Path = Field(
        default=Path.home() / ".jarvis" / "state",
        description="Directory holding one JSON file per state namespace",
    )
    lock_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Seconds to wait for a namespace file lock before failing open",
    )

    # Rules
    skill_rules_path: Path | None = Field(
        default=None,
        description="Global skill-rules.json (falls back to built-in rules)",
    )
    project_skill_rules_path: Path = Field(
        default=Path(".claude") / "skills" / "skill-rules.json",
        description="Project rules file, relative to the project root; wins when present",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=False,
        description="Emit structured JSON log lines",
    )
    log_file: Path | None = Field(
        default=None,
        description="Hook log file (default: <state_dir>/../logs/hooks.log)",
    )

    # Runtime
    hook_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Default per-hook timeout",
    )
    hook_timeouts: dict[str, float] = Field(
        default_factory=dict,
        description="Per-hook timeout overrides keyed by hook name",
    )
    disabled_hooks: list[str] = Field(
        default_factory=list,
        description="Hook names that are never invoked",
    )

    # Skill activation
    session_expiry_hours: float = Field(
        default=4.0,
        gt=0.0,
        description="Hours of inactivity after which a session's recommendations reset",
    )

    # Memory tiers
    warm_promotion_threshold: int = Field(
        default=3,
        ge=1,
        description="Pattern occurrences required before promotion to the hot tier",
    )
    confidence_scale: float = Field(
        default=10.0,
        gt=0.0,
        description="Divisor in confidence = min(count / scale, 1.0)",
    )
    cold_demotion_days: int = Field(
        default=30,
        ge=1,
        description="Days of inactivity before an entry is demoted to cold",
    )
    hot_capacity: int = Field(
        default=20,
        ge=1,
        description="Maximum hot-tier entries before the oldest overflow",
    )
    demotion_policy: Literal["inactivity", "usage_since_promotion"] = Field(
        default="inactivity",
        description="Which demotion policy the archival sweep applies",
    )
    min_uses_since_promotion: int = Field(
        default=1,
        ge=0,
        description="Occurrences since promotion that keep an entry active "
        "(usage_since_promotion policy)",
    )

    # Safety
    protected_branches: list[str] = Field(
        default_factory=lambda: ["main", "master"],
        description="Branches that may not be pushed to or merged into directly",
    )
    require_isolation: bool = Field(
        default=False,
        description="Block file edits outside a git worktree",
    )
    any_type_severity: Literal["warn", "error"] = Field(
        default="warn",
        description="Explicit 'any' in TypeScript edits: warn in context or block",
    )

    # Compaction
    task_dir: Path = Field(
        default=Path(".claude") / "tasks",
        description="Task files scanned for an in-progress summary, relative to the project root",
    )
    task_max_age_minutes: int = Field(
        default=60,
        ge=1,
        description="Only task files modified this recently are considered",
    )
    task_summary_max_chars: int = Field(
        default=200,
        ge=10,
        description="Maximum length of the preserved task summary",
    )

    # Health
    degradation_thresholds: tuple[int, int, int] = Field(
        default=(3, 5, 10),
        description="Consecutive failures that trigger degradation levels 1, 2 and 3",
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return value

    @field_validator("state_dir", "skill_rules_path", "log_file")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        first, second, third = self.degradation_thresholds
        if not 0 < first <= second <= third:
            raise ValueError("degradation_thresholds must be positive and non-decreasing")
        return self

    @property
    def resolved_log_file(self) -> Path:
        if self.log_file is not None:
            return self.log_file
        return self.state_dir.parent / "logs" / "hooks.log"

    model_config = {
        "env_prefix": "JARVIS_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


# Settings singleton - lazily initialized
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the current settings instance (lazily loaded).

    Returns:
        The current Settings instance.

    Example:
        from jarvis_hooks.config import get_settings
        settings = get_settings()
        print(settings.state_dir)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def override_settings(new_settings: Settings) -> None:
    """Override the settings instance (for testing).

    Args:
        new_settings: The new Settings instance to use.

    Example:
        from jarvis_hooks.config import override_settings, Settings
        override_settings(Settings(state_dir="/tmp/test"))
    """
    global _settings
    _settings = new_settings


def reset_settings() -> None:
    """Reset settings to None (forces reload on next get_settings call)."""
    global _settings
    _settings = None
