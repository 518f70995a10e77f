"""Unit tests for jarvis_hooks.config."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from jarvis_hooks.config import Settings, get_settings, override_settings, reset_settings


@pytest.mark.unit
class TestSettingsDefaults:
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        assert settings.state_dir == Path.home() / ".jarvis" / "state"
        assert settings.hook_timeout_seconds == 5.0
        assert settings.session_expiry_hours == 4.0
        assert settings.warm_promotion_threshold == 3
        assert settings.confidence_scale == 10.0
        assert settings.cold_demotion_days == 30
        assert settings.demotion_policy == "inactivity"
        assert settings.protected_branches == ["main", "master"]
        assert settings.require_isolation is False
        assert settings.degradation_thresholds == (3, 5, 10)

    def test_log_file_defaults_next_to_state_dir(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, state_dir=tmp_path / "state")
        assert settings.resolved_log_file == tmp_path / "logs" / "hooks.log"

    def test_explicit_log_file_wins(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, log_file=tmp_path / "custom.log")
        assert settings.resolved_log_file == tmp_path / "custom.log"

    def test_any_type_severity_defaults_to_warn(self) -> None:
        assert Settings(_env_file=None).any_type_severity == "warn"


@pytest.mark.unit
class TestSettingsValidation:
    def test_log_level_uppercased(self) -> None:
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_decreasing_thresholds_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, degradation_thresholds=(5, 3, 10))

    def test_unknown_demotion_policy_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, demotion_policy="random")

    def test_unknown_any_type_severity_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, any_type_severity="fatal")

    def test_env_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JARVIS_WARM_PROMOTION_THRESHOLD", "5")
        monkeypatch.setenv("JARVIS_REQUIRE_ISOLATION", "true")
        settings = Settings(_env_file=None)
        assert settings.warm_promotion_threshold == 5
        assert settings.require_isolation is True


@pytest.mark.unit
class TestSettingsSingleton:
    def test_override_and_reset(self, tmp_path: Path) -> None:
        custom = Settings(_env_file=None, state_dir=tmp_path)
        override_settings(custom)
        try:
            assert get_settings() is custom
        finally:
            reset_settings()
        assert get_settings() is not custom
        reset_settings()
