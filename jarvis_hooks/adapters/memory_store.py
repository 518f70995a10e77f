"""In-memory state store used by tests and dry runs."""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable
from typing import Any, TypeVar

R = TypeVar("R")


class InMemoryStore:
    """Dict-backed implementation of ``StateStoreProtocol``.

    Values are deep-copied in and out so callers can't mutate stored state
    by accident, matching the JSON-file store's semantics.
    """

    def __init__(self, namespace: str = "default") -> None:
        self.namespace = namespace
        self._data: dict[str, Any] = {}
        self._lock = threading.RLock()

    def transact(self, fn: Callable[[dict[str, Any]], R]) -> R:
        with self._lock:
            working = copy.deepcopy(self._data)
            result = fn(working)
            self._data = working
            return result

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return copy.deepcopy(self._data.get(key, default))

    def items(self) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def take(self, key: str) -> Any | None:
        with self._lock:
            return self._data.pop(key, None)

    def update(self, key: str, fn: Callable[[Any | None], Any]) -> Any:
        with self._lock:
            new_value = fn(copy.deepcopy(self._data.get(key)))
            if new_value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = copy.deepcopy(new_value)
            return new_value

    def increment(self, key: str, amount: int = 1) -> int:
        with self._lock:
            current = self._data.get(key, 0)
            if not isinstance(current, int) or isinstance(current, bool):
                current = 0
            self._data[key] = current + amount
            return self._data[key]


class InMemoryStateBackend:
    """Hands out one ``InMemoryStore`` per namespace, reused across opens."""

    def __init__(self) -> None:
        self._stores: dict[str, InMemoryStore] = {}
        self._lock = threading.Lock()

    def open(self, namespace: str) -> InMemoryStore:
        with self._lock:
            if namespace not in self._stores:
                self._stores[namespace] = InMemoryStore(namespace)
            return self._stores[namespace]
