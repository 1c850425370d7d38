"""Filesystem helpers shared by the pipeline.

Per the cleanup contract: cosmetic operations go through best_effort() so their
failures can never replace the outcome of the operation they decorate.
"""

import logging
import shutil
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)


def best_effort(action: Callable[[], object], description: str) -> bool:
    """Run a cleanup action, discarding any failure.

    Args:
        action: Zero-argument callable
        description: What the action does, for the debug log

    Returns:
        True if the action completed, False if it raised
    """
    try:
        action()
        return True
    except Exception as e:
        logger.debug(f"Best-effort step failed ({description}): {e}")
        return False


def is_empty_directory(path: Path) -> bool:
    """True if path is a directory with no entries, hidden ones included."""
    return path.is_dir() and not any(path.iterdir())


def mirror_directory(source: Path, destination: Path) -> None:
    """Copy a directory tree into destination, merging with existing content."""
    shutil.copytree(source, destination, dirs_exist_ok=True)


def remove_path(path: Path) -> None:
    """Remove a file or a directory tree; missing paths are ignored."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def find_installation_root(start: Path, marker: str = "wire", max_ascent: int = 32) -> Path | None:
    """Find the application root: the nearest directory containing `marker`.

    Checks `start`, then its immediate subdirectories, then walks upward one
    parent at a time, at most `max_ascent` times.

    Args:
        start: Directory to start from
        marker: Directory name identifying the root
        max_ascent: Maximum number of parent directories to visit

    Returns:
        Root directory, or None if not found within the bound

    Example:
        >>> find_installation_root(Path("/var/www/site/site/templates"))
        PosixPath('/var/www/site')
    """
    current = start.resolve()

    if (current / marker).is_dir():
        return current

    if current.is_dir():
        for child in sorted(current.iterdir()):
            if child.is_dir() and (child / marker).is_dir():
                logger.info(f"Installation root found in subdirectory: {child}")
                return child

    for _ in range(max_ascent):
        parent = current.parent
        if parent == current:
            break
        current = parent
        if (current / marker).is_dir():
            logger.info(f"Installation root found at {current}")
            return current

    return None


def format_size(num_bytes: int | None) -> str:
    """Human readable byte count, e.g. 4.32 MB."""
    if num_bytes is None:
        return "?"
    units = ["B", "KB", "MB", "GB", "TB"]
    size = float(max(num_bytes, 0))
    unit = 0
    while size >= 1024 and unit < len(units) - 1:
        size /= 1024
        unit += 1
    return f"{size:.2f} {units[unit]}"
