"""Discovery logic for finding local registry directories.

Provides utilities for:
- Finding git repository roots
- Locating .deaddrop directories
- Resolving which directory a registry should be opened from
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEADDROP_DIRNAME = ".deaddrop"


class RegistryNotFound(Exception):
    """Raised when no local registry directory can be found."""

    pass


def find_git_root(start_path: Path | str | None = None) -> Path | None:
    """Find the root of the git repository containing start_path.

    Walks up the directory tree looking for a .git directory.

    Args:
        start_path: Starting directory. Defaults to current working directory.

    Returns:
        Path to git root, or None if not in a git repository.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path)

    path = start_path.resolve()

    while path != path.parent:
        if (path / ".git").exists():
            return path
        path = path.parent

    # Check root directory too
    if (path / ".git").exists():
        return path

    return None


def find_deaddrop_dir(start_path: Path | str | None = None) -> Path | None:
    """Find a .deaddrop directory, checking CWD first, then git root.

    Search order:
        1. {start_path}/.deaddrop
        2. {git_root}/.deaddrop (if in a git repo)
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    cwd_deaddrop = start_path / DEADDROP_DIRNAME
    if cwd_deaddrop.is_dir():
        return cwd_deaddrop

    git_root = find_git_root(start_path)
    if git_root:
        git_deaddrop = git_root / DEADDROP_DIRNAME
        if git_deaddrop.is_dir():
            return git_deaddrop

    return None


def get_deaddrop_init_path(start_path: Path | str | None = None) -> Path:
    """Get the path where a new .deaddrop should be initialized.

    Prefers git root if in a repository, otherwise uses start_path.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    git_root = find_git_root(start_path)
    if git_root:
        return git_root / DEADDROP_DIRNAME

    return start_path / DEADDROP_DIRNAME


def discover_registry_path(start_path: Path | str | None = None) -> Path:
    """Find the local registry directory to open.

    Discovery order:
        1. DEADDROP_PATH environment variable
        2. Local .deaddrop directory (CWD, then git root)

    Raises:
        RegistryNotFound: If no registry directory is found.
    """
    env_path = os.environ.get("DEADDROP_PATH")
    if env_path:
        path = Path(env_path)
        if path.is_dir():
            logger.debug("Using registry from DEADDROP_PATH: %s", path)
            return path
        raise RegistryNotFound(f"DEADDROP_PATH points to non-existent directory: {env_path}")

    local_path = find_deaddrop_dir(start_path)
    if local_path:
        logger.debug("Discovered registry at %s", local_path)
        return local_path

    raise RegistryNotFound(
        "No .deaddrop directory found. "
        "Create one with: deadrop-registry init --admin <principal>"
    )


def ensure_gitignore(deaddrop_path: Path) -> bool:
    """Ensure .deaddrop is in .gitignore if in a git repo.

    Returns:
        True if .gitignore was updated, False otherwise.
    """
    git_root = find_git_root(deaddrop_path.parent)
    if not git_root:
        return False

    gitignore_path = git_root / ".gitignore"
    entry = f"{deaddrop_path.name}/"

    if gitignore_path.exists():
        for line in gitignore_path.read_text().splitlines():
            stripped = line.strip().strip("/")
            if stripped == deaddrop_path.name:
                return False

    content = gitignore_path.read_text() if gitignore_path.exists() else ""
    with open(gitignore_path, "a") as f:
        # Add newline if file doesn't end with one
        if content and not content.endswith("\n"):
            f.write("\n")
        f.write(f"{entry}\n")

    logger.info("Added %s to %s", entry, gitignore_path)
    return True
