"""Git repository inspection without shelling out.

Reads ``.git`` entries directly so the safety and isolation hooks stay
within their timeout even on slow machines.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepoInfo:
    """What the hooks need to know about the repository at a path."""

    root: Path
    git_dir: Path
    is_worktree: bool
    branch: str | None  # None when HEAD is detached or unreadable


def find_git_root(start_path: str | Path) -> Path | None:
    """Nearest directory at or above *start_path* holding a ``.git`` entry.

    Works for files, directories and paths that don't exist yet (an edit
    creating a new file).  Returns None outside any repository.
    """
    try:
        current = Path(start_path).expanduser().resolve()
    except (OSError, RuntimeError):
        return None

    if current.is_file():
        current = current.parent

    while True:
        if (current / ".git").exists():
            return current
        parent = current.parent
        if parent == current:
            return None
        current = parent


def parse_git_entry(git_path: Path) -> Path:
    """Resolve a ``.git`` entry to the real git directory.

    A worktree (or submodule) has a ``.git`` *file* holding
    ``gitdir: <path>``; a regular checkout has a directory.  Anything
    unreadable resolves to *git_path* itself.
    """
    if git_path.is_dir():
        return git_path

    try:
        first_line = git_path.read_text(encoding="utf-8").strip().splitlines()[0]
    except (OSError, IndexError) as e:
        logger.debug("Unreadable .git file %s: %s", git_path, e)
        return git_path

    key, _, value = first_line.partition(":")
    if key.strip() != "gitdir" or not value.strip():
        return git_path
    target = (git_path.parent / value.strip()).resolve()
    if not target.is_dir():
        logger.debug("gitdir target is not a directory: %s", target)
        return git_path
    return target


def read_branch(git_dir: Path) -> str | None:
    """Return the checked-out branch name from ``HEAD``, or None if detached."""
    try:
        head = (git_dir / "HEAD").read_text(encoding="utf-8").strip()
    except OSError as e:
        logger.debug("Cannot read HEAD in %s: %s", git_dir, e)
        return None

    prefix = "ref: refs/heads/"
    if head.startswith(prefix):
        return head[len(prefix) :]
    return None


def inspect_repo(start_path: str | Path) -> RepoInfo | None:
    """Describe the repository containing *start_path*.

    Returns:
        RepoInfo, or None when *start_path* is not inside a git repository.
    """
    root = find_git_root(start_path)
    if root is None:
        return None

    git_entry = root / ".git"
    git_dir = parse_git_entry(git_entry)
    # Linked worktrees point at <common>/.git/worktrees/<name>; submodules at .git/modules/
    is_worktree = git_entry.is_file() and git_dir.parent.name == "worktrees"
    return RepoInfo(
        root=root,
        git_dir=git_dir,
        is_worktree=is_worktree,
        branch=read_branch(git_dir),
    )
