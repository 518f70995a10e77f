"""Custom exceptions for Jarvis Hooks."""

from pathlib import Path


def sanitize_path_for_error(path: str | Path) -> str:
    """Extract only the filename from a path for safe error messages.

    Prevents leaking full system paths in messages that may be surfaced to
    the assistant through a hook response.

    Args:
        path: Full path or filename.

    Returns:
        Just the filename portion.
    """
    if isinstance(path, Path):
        return path.name
    return Path(path).name


class JarvisHooksError(Exception):
    """Base exception for all Jarvis Hooks errors."""

    pass


class ConfigurationError(JarvisHooksError):
    """Raised when configuration is invalid."""

    pass


class ValidationError(JarvisHooksError):
    """Raised when input validation fails."""

    pass


class StorageError(JarvisHooksError):
    """Raised when a state store cannot be read or written."""

    pass


class FileLockError(StorageError):
    """Raised when a cross-process file lock cannot be acquired."""

    def __init__(
        self,
        lock_path: str,
        timeout: float,
        message: str | None = None,
    ) -> None:
        self.lock_path = lock_path
        self.timeout = timeout
        safe_name = sanitize_path_for_error(lock_path)
        self.message = message or f"Failed to acquire file lock at {safe_name} after {timeout}s"
        super().__init__(self.message)


class RuleLoadError(JarvisHooksError):
    """Raised when a rules file exists but cannot be parsed."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Invalid rules file {sanitize_path_for_error(path)}: {reason}")


class EntryNotFoundError(JarvisHooksError):
    """Raised when a memory tier entry ID doesn't exist."""

    def __init__(self, entry_id: str) -> None:
        self.entry_id = entry_id
        super().__init__(f"Memory entry not found: {entry_id}")
