"""
Segment manifest reader.

The encoder appends one chunk filename per line once that chunk is
closed. Readers only ever see complete names for finished chunks.
"""

from pathlib import Path
from typing import List, Set

MANIFEST_NAME = "segment_list.txt"


def manifest_path(chunk_dir: Path) -> Path:
    return Path(chunk_dir) / MANIFEST_NAME


def ensure_exists(path: Path) -> None:
    """Create an empty manifest if there is none yet."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8"):
            return
    except FileNotFoundError:
        pass
    # "a" never truncates a manifest created concurrently
    with open(path, "a", encoding="utf-8"):
        pass


def load_ordered(path: Path) -> List[str]:
    """
    Read the manifest in append order.

    Returns:
        Non-empty lines, first occurrence wins

    Raises:
        OSError: If the manifest cannot be opened or read
    """
    names: List[str] = []
    seen: Set[str] = set()
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            name = line.rstrip("\r\n")
            if name and name not in seen:
                seen.add(name)
                names.append(name)
    return names


def load(path: Path) -> Set[str]:
    """Read the manifest as a set of chunk filenames."""
    return set(load_ordered(path))
