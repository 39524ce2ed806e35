"""
Repository root detection utility.

Finds the consumer repository root by searching upward for a .tiergate/
directory. This keeps tiergate commands anchored to the user's component
tree, not the directory the shell happens to be in.
"""

from pathlib import Path
from typing import Optional

MARKER_DIR = ".tiergate"


def find_repo_root(start: Optional[Path] = None) -> Path:
    """
    Find repo root by searching upward for .tiergate/ directory.

    Args:
        start: Starting directory (default: cwd)

    Returns:
        Path to repo root (directory containing .tiergate/)

    Note:
        If .tiergate/ is not found, a directory holding package.json or
        tsconfig.json is accepted instead. Failing both, the starting
        directory is returned so that uninitialized repos can still be
        checked with packaged defaults.
    """
    origin = (start or Path.cwd()).resolve()

    current = origin
    while current != current.parent:
        if (current / MARKER_DIR).is_dir():
            return current
        current = current.parent

    current = origin
    while current != current.parent:
        if (current / "package.json").is_file() or (current / "tsconfig.json").is_file():
            return current
        current = current.parent

    return origin
