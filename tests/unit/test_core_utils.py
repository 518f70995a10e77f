"""Unit tests for jarvis_hooks.core.utils and jarvis_hooks.core.errors."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from jarvis_hooks.core.errors import (
    EntryNotFoundError,
    FileLockError,
    RuleLoadError,
    StorageError,
    sanitize_path_for_error,
)
from jarvis_hooks.core.utils import format_timestamp, parse_timestamp, to_aware_utc, truncate


@pytest.mark.unit
class TestTimestamps:
    def test_naive_datetime_assumed_utc(self) -> None:
        result = to_aware_utc(datetime(2024, 1, 15, 12, 0))
        assert result.tzinfo is timezone.utc
        assert result.hour == 12

    def test_aware_datetime_converted(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        result = to_aware_utc(datetime(2024, 1, 15, 14, 0, tzinfo=plus_two))
        assert result.hour == 12

    def test_format_uses_trailing_z(self) -> None:
        dt = datetime(2024, 1, 15, 12, 30, 45, tzinfo=timezone.utc)
        assert format_timestamp(dt) == "2024-01-15T12:30:45Z"

    def test_parse_accepts_trailing_z(self) -> None:
        parsed = parse_timestamp("2024-01-15T12:30:45Z")
        assert parsed == datetime(2024, 1, 15, 12, 30, 45, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["", "yesterday", None, 42])
    def test_parse_rejects_garbage(self, value: object) -> None:
        assert parse_timestamp(value) is None


@pytest.mark.unit
class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert truncate("fix login", 20) == "fix login"

    def test_whitespace_collapsed(self) -> None:
        assert truncate("fix\n\n  login   bug", 50) == "fix login bug"

    def test_long_text_gets_ellipsis(self) -> None:
        result = truncate("a" * 50, 10)
        assert len(result) == 10
        assert result.endswith("...")


@pytest.mark.unit
class TestErrors:
    def test_sanitize_path_keeps_only_filename(self) -> None:
        assert sanitize_path_for_error("/home/user/.jarvis/state/health.json") == "health.json"
        assert sanitize_path_for_error(Path("/a/b/c.lock")) == "c.lock"

    def test_file_lock_error_hides_directory(self) -> None:
        error = FileLockError(lock_path="/secret/dir/health.json.lock", timeout=2.0)
        assert isinstance(error, StorageError)
        assert "/secret/dir" not in str(error)
        assert "health.json.lock" in str(error)

    def test_rule_load_error_message(self) -> None:
        error = RuleLoadError("/x/skill-rules.json", "invalid JSON")
        assert "skill-rules.json" in str(error)
        assert "invalid JSON" in str(error)
        assert error.path == "/x/skill-rules.json"

    def test_entry_not_found_keeps_id(self) -> None:
        assert EntryNotFoundError("abc").entry_id == "abc"
