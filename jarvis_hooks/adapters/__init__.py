"""Infrastructure adapters for Jarvis Hooks."""

from jarvis_hooks.adapters.git import RepoInfo, find_git_root, inspect_repo
from jarvis_hooks.adapters.json_store import JsonFileStore, JsonStateBackend
from jarvis_hooks.adapters.memory_store import InMemoryStateBackend, InMemoryStore

__all__ = [
    "InMemoryStateBackend",
    "InMemoryStore",
    "JsonFileStore",
    "JsonStateBackend",
    "RepoInfo",
    "find_git_root",
    "inspect_repo",
]
