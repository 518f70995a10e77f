"""JSON-file state store.

One ``<namespace>.json`` file per namespace under the state directory.
Mutations hold a ``filelock`` lock on ``<namespace>.json.lock`` and write
the whole file through a temp file plus ``os.replace`` so readers never
observe a torn file.

A missing file is an empty namespace.  An unreadable or corrupt file is
also treated as empty (and logged); the next successful write replaces it.
"""

from __future__ import annotations

import contextlib
import copy
import json
import logging
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from filelock import FileLock
from filelock import Timeout as FileLockTimeout

from jarvis_hooks.core.errors import FileLockError, StorageError, ValidationError

logger = logging.getLogger(__name__)

R = TypeVar("R")


def _validate_namespace(namespace: str) -> str:
    if not namespace or not namespace.replace("_", "").replace("-", "").isalnum():
        raise ValidationError(f"Invalid namespace name: {namespace!r}")
    return namespace


class JsonFileStore:
    """File-backed implementation of ``StateStoreProtocol``."""

    def __init__(
        self,
        state_dir: Path,
        namespace: str,
        lock_timeout: float = 2.0,
    ) -> None:
        """Initialize the store.

        Args:
            state_dir: Directory holding the namespace files.
            namespace: Namespace name (letters, digits, ``_`` and ``-``).
            lock_timeout: Seconds to wait for the namespace lock.
        """
        self.namespace = _validate_namespace(namespace)
        self.path = Path(state_dir) / f"{namespace}.json"
        self.lock_timeout = lock_timeout
        self._lock = FileLock(str(self.path) + ".lock", timeout=lock_timeout)

    # =========================================================================
    # File I/O
    # =========================================================================

    def _read(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning(f"Cannot read state namespace {self.namespace}: {e}")
            return {}

        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt state namespace {self.namespace}, treating as empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"State namespace {self.namespace} is not a JSON object, ignoring")
            return {}
        return data

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.namespace}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    # =========================================================================
    # Protocol
    # =========================================================================

    def transact(self, fn: Callable[[dict[str, Any]], R]) -> R:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock:
                data = self._read()
                before = json.dumps(data, sort_keys=True)
                result = fn(data)
                self._write_if_changed(before, data)
                return result
        except FileLockTimeout as e:
            raise FileLockError(
                lock_path=str(self.path) + ".lock",
                timeout=self.lock_timeout,
            ) from e
        except OSError as e:
            raise StorageError(f"Cannot lock state namespace {self.namespace}: {e}") from e

    def _write_if_changed(self, before: str, data: dict[str, Any]) -> None:
        try:
            if json.dumps(data, sort_keys=True) != before:
                self._write(data)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write state namespace {self.namespace}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def items(self) -> dict[str, Any]:
        return self._read()

    def set(self, key: str, value: Any) -> None:
        def _set(data: dict[str, Any]) -> None:
            data[key] = value

        self.transact(_set)

    def delete(self, key: str) -> bool:
        return self.transact(lambda data: data.pop(key, None) is not None)

    def take(self, key: str) -> Any | None:
        return self.transact(lambda data: data.pop(key, None))

    def update(self, key: str, fn: Callable[[Any | None], Any]) -> Any:
        def _update(data: dict[str, Any]) -> Any:
            new_value = fn(copy.deepcopy(data.get(key)))
            if new_value is None:
                data.pop(key, None)
            else:
                data[key] = new_value
            return new_value

        return self.transact(_update)

    def increment(self, key: str, amount: int = 1) -> int:
        def _increment(data: dict[str, Any]) -> int:
            current = data.get(key, 0)
            if not isinstance(current, int) or isinstance(current, bool):
                current = 0
            data[key] = current + amount
            return data[key]

        return self.transact(_increment)


class JsonStateBackend:
    """Opens ``JsonFileStore`` namespaces under one state directory."""

    def __init__(self, state_dir: Path, lock_timeout: float = 2.0) -> None:
        self.state_dir = Path(state_dir)
        self.lock_timeout = lock_timeout

    def open(self, namespace: str) -> JsonFileStore:
        return JsonFileStore(self.state_dir, namespace, lock_timeout=self.lock_timeout)
