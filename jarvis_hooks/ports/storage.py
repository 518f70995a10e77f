"""Protocol interfaces for persisted hook state.

Every store in the system sits on top of a single-namespace key/value
interface holding JSON-compatible values.  The JSON-file adapter is used by
hook processes; the in-memory adapter is used by tests.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, TypeVar

R = TypeVar("R")


class StateStoreProtocol(Protocol):
    """Key/value store for one namespace.

    Read-modify-write methods (``update``, ``increment``, ``take`` and
    ``transact``) are atomic with respect to other processes using the
    same namespace.
    """

    namespace: str

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for *key*, or *default* if absent."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    def delete(self, key: str) -> bool:
        """Remove *key*.

        Returns:
            True if the key existed.
        """
        ...

    def take(self, key: str) -> Any | None:
        """Atomically read and remove *key*.

        Of two concurrent callers only one receives the value; the other
        receives ``None``.
        """
        ...

    def update(self, key: str, fn: Callable[[Any | None], Any]) -> Any:
        """Atomically replace the value for *key* with ``fn(current)``.

        *fn* receives ``None`` when the key is absent.  If it returns
        ``None`` the key is removed.

        Returns:
            The new value.
        """
        ...

    def increment(self, key: str, amount: int = 1) -> int:
        """Atomically add *amount* to an integer counter (missing counts as 0)."""
        ...

    def items(self) -> dict[str, Any]:
        """Return a snapshot copy of the whole namespace."""
        ...

    def transact(self, fn: Callable[[dict[str, Any]], R]) -> R:
        """Run *fn* against the mutable namespace contents under the lock.

        Changes *fn* makes to the dict are persisted when it returns.
        """
        ...


class StateBackendProtocol(Protocol):
    """Hands out namespace stores that share one backing location."""

    def open(self, namespace: str) -> StateStoreProtocol:
        ...
