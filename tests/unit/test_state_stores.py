"""Unit tests for the JSON-file and in-memory state stores.

Tests cover:
- Basic get/set/delete semantics shared by both adapters
- update() removing a key when the callback returns None
- take() handing a value out exactly once
- Corrupt and non-object files read as an empty namespace
- Lock timeouts surfacing as FileLockError
- Namespace name validation
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from filelock import Timeout as FileLockTimeout

from jarvis_hooks.adapters.json_store import JsonFileStore, JsonStateBackend
from jarvis_hooks.adapters.memory_store import InMemoryStateBackend, InMemoryStore
from jarvis_hooks.core.errors import FileLockError, ValidationError


@pytest.fixture(params=["json", "memory"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> Any:
    if request.param == "json":
        return JsonFileStore(tmp_path, "sample")
    return InMemoryStore("sample")


# =============================================================================
# Shared semantics
# =============================================================================


@pytest.mark.unit
class TestStoreSemantics:
    def test_missing_key_returns_default(self, store: Any) -> None:
        assert store.get("absent") is None
        assert store.get("absent", 7) == 7

    def test_set_then_get(self, store: Any) -> None:
        store.set("k", {"count": 1})
        assert store.get("k") == {"count": 1}

    def test_returned_values_are_copies(self, store: Any) -> None:
        store.set("k", {"items": [1]})
        value = store.get("k")
        value["items"].append(2)
        assert store.get("k") == {"items": [1]}

    def test_delete_reports_existence(self, store: Any) -> None:
        store.set("k", 1)
        assert store.delete("k") is True
        assert store.delete("k") is False

    def test_take_returns_value_once(self, store: Any) -> None:
        store.set("snapshot", {"skill": "tdd"})
        assert store.take("snapshot") == {"skill": "tdd"}
        assert store.take("snapshot") is None

    def test_update_receives_none_for_missing_key(self, store: Any) -> None:
        seen: list[Any] = []

        def fn(current: Any) -> int:
            seen.append(current)
            return 1

        assert store.update("k", fn) == 1
        assert seen == [None]
        assert store.get("k") == 1

    def test_update_returning_none_removes_key(self, store: Any) -> None:
        store.set("k", 1)
        store.update("k", lambda current: None)
        assert "k" not in store.items()

    def test_increment_starts_at_zero(self, store: Any) -> None:
        assert store.increment("count") == 1
        assert store.increment("count", 4) == 5

    def test_increment_replaces_non_integer(self, store: Any) -> None:
        store.set("count", "three")
        assert store.increment("count") == 1

    def test_transact_persists_mutations(self, store: Any) -> None:
        def fn(data: dict[str, Any]) -> str:
            data["a"] = 1
            data["b"] = 2
            return "done"

        assert store.transact(fn) == "done"
        assert store.items() == {"a": 1, "b": 2}


# =============================================================================
# JSON file specifics
# =============================================================================


@pytest.mark.unit
class TestJsonFileStore:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert JsonFileStore(tmp_path / "nested", "health").items() == {}

    def test_creates_state_dir_on_write(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path / "nested" / "state", "health")
        store.set("k", 1)
        assert (tmp_path / "nested" / "state" / "health.json").exists()

    def test_corrupt_file_reads_as_empty(self, tmp_path: Path) -> None:
        (tmp_path / "health.json").write_text("{not json", encoding="utf-8")
        store = JsonFileStore(tmp_path, "health")
        assert store.items() == {}
        store.set("k", 1)
        assert store.items() == {"k": 1}

    def test_non_object_file_reads_as_empty(self, tmp_path: Path) -> None:
        (tmp_path / "health.json").write_text("[1, 2, 3]", encoding="utf-8")
        assert JsonFileStore(tmp_path, "health").items() == {}

    def test_unchanged_transaction_does_not_write(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path, "health")
        store.transact(lambda data: None)
        assert not (tmp_path / "health.json").exists()

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path, "health")
        for i in range(5):
            store.set(f"k{i}", i)
        assert list(tmp_path.glob("*.tmp")) == []

    def test_lock_timeout_raises_file_lock_error(self, tmp_path: Path) -> None:
        store = JsonFileStore(tmp_path, "health", lock_timeout=0.1)
        with patch.object(
            store._lock, "acquire", side_effect=FileLockTimeout(str(store.path) + ".lock")
        ):
            with pytest.raises(FileLockError) as exc_info:
                store.set("k", 1)
        assert "health.json.lock" in str(exc_info.value)
        assert str(tmp_path) not in str(exc_info.value)

    @pytest.mark.parametrize("name", ["", "../escape", "a/b", "with space"])
    def test_invalid_namespace_rejected(self, tmp_path: Path, name: str) -> None:
        with pytest.raises(ValidationError):
            JsonFileStore(tmp_path, name)

    def test_backend_opens_namespace_files(self, tmp_path: Path) -> None:
        backend = JsonStateBackend(tmp_path, lock_timeout=1.0)
        store = backend.open("memory_tiers")
        store.set("k", 1)
        assert store.lock_timeout == 1.0
        assert backend.open("memory_tiers").get("k") == 1


@pytest.mark.unit
class TestInMemoryStateBackend:
    def test_same_namespace_shares_store(self) -> None:
        backend = InMemoryStateBackend()
        backend.open("a").set("k", 1)
        assert backend.open("a").get("k") == 1
        assert backend.open("b").get("k") is None
