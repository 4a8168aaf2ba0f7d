"""
Directory scanning helpers.

Finds candidate media files for each stage and resolves file names given
on the command line.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


def find_folder(root: Path, folder_name: str) -> Optional[Path]:
    """
    Search ``root`` recursively for a directory called ``folder_name``.

    Returns:
        The first match in sorted traversal order, or None
    """
    root = Path(root)
    if not root.is_dir():
        return None

    try:
        children = sorted(p for p in root.iterdir() if p.is_dir())
    except OSError as e:
        logger.warning(f"Cannot list {root}: {e}")
        return None

    for child in children:
        if child.name == folder_name:
            return child
        found = find_folder(child, folder_name)
        if found is not None:
            return found
    return None


def scan(directory: Path, pattern: str, recursive: bool = True) -> List[Path]:
    """List files under ``directory`` matching ``pattern``, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        logger.debug(f"Scan directory does not exist: {directory}")
        return []

    matches = directory.rglob(pattern) if recursive else directory.glob(pattern)
    files = [p.resolve() for p in matches if p.is_file()]
    return sorted(files, key=lambda p: str(p).lower())


def resolve_inputs(names: Iterable[str], default_dir: Path) -> List[Path]:
    """
    Resolve user supplied files.

    An existing path is used as given; anything else is treated as a bare
    file name inside ``default_dir``. Entries that still do not resolve to
    an existing file are dropped.
    """
    resolved = []
    for name in names:
        candidate = Path(name)
        if not candidate.exists():
            candidate = Path(default_dir) / candidate.name

        if candidate.is_file():
            resolved.append(candidate.resolve())
        else:
            logger.warning(f"Skipping missing file: {name}")
    return resolved
