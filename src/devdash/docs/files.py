"""Recursive markdown file discovery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_DIRS = frozenset({"node_modules", ".git", ".cache", ".config", ".npm", ".next"})


def find_markdown_files(
    root: Path,
    extension: str = ".md",
    excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
) -> list[str]:
    """Return paths of files ending in *extension* under *root*.

    Paths are POSIX-style and relative to *root*. Directories named in
    *excluded_dirs* are not descended into, symlinked directories are not
    followed, and unreadable directories are skipped.

    Raises:
        NotADirectoryError: If *root* is not an existing directory.
    """
    root = root.resolve()
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")
    excluded = frozenset(excluded_dirs)
    found: list[str] = []
    _walk(root, root, extension, excluded, found)
    logger.debug("Found %d %s files under %s", len(found), extension, root)
    return found


def _walk(
    root: Path,
    directory: Path,
    extension: str,
    excluded: frozenset[str],
    found: list[str],
) -> None:
    for child in _safe_iterdir(directory):
        if child.is_dir():
            if child.name not in excluded and not child.is_symlink():
                _walk(root, child, extension, excluded, found)
        elif child.is_file() and child.name.endswith(extension):
            found.append(child.relative_to(root).as_posix())


def _safe_iterdir(path: Path) -> list[Path]:
    """List directory children sorted by name, returning empty list on errors."""
    try:
        return sorted(path.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        logger.debug("Skipping unreadable directory %s: %s", path, exc)
        return []
