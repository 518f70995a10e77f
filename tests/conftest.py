"""Pytest fixtures for Jarvis Hooks tests."""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from jarvis_hooks.adapters.memory_store import InMemoryStateBackend
from jarvis_hooks.config import Settings, override_settings, reset_settings
from tests.helpers import FixedClock

# ---------------------------------------------------------------------------
# Basic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_storage() -> Generator[Path, None, None]:
    """Provide temporary storage directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_storage: Path) -> Generator[Settings, None, None]:
    """Provide test settings with temp state and log locations."""
    settings = Settings(
        state_dir=temp_storage / "state",
        log_file=temp_storage / "logs" / "hooks.log",
        log_level="DEBUG",
        hook_timeout_seconds=2.0,
    )
    override_settings(settings)
    yield settings
    reset_settings()


@pytest.fixture
def backend() -> InMemoryStateBackend:
    """Provide a fresh in-memory state backend."""
    return InMemoryStateBackend()


@pytest.fixture
def clock() -> FixedClock:
    """Provide a clock fixed at 2024-01-15 12:00 UTC."""
    return FixedClock()


@pytest.fixture
def restore_root_logger() -> Generator[None, None, None]:
    """Undo configure_logging() changes to the root logger."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
