"""Port interfaces for Jarvis Hooks."""

from jarvis_hooks.ports.storage import StateBackendProtocol, StateStoreProtocol

__all__ = [
    "StateBackendProtocol",
    "StateStoreProtocol",
]
