# rms_desktop/core/assets.py
"""
RMS Desktop – web asset lookup
==============================

The sidecar serves the web UI from a directory containing `index.html`.
Where that directory lives depends on how the launcher was shipped:

• packaged build  → somewhere below the bundle's resource directory
• development run → the workspace build output (`web/dist`)

`resolve_web_assets` always returns *some* path. If nothing matches, the
last-resort path is returned even without an index document; the launch
goes ahead and the sidecar reports missing assets itself.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

log = logging.getLogger(__name__)

INDEX_MARKER = "index.html"
MAX_SEARCH_DEPTH = 5


def has_index(directory: Path) -> bool:
    return (directory / INDEX_MARKER).is_file()


def web_asset_candidates(resource_dir: Optional[Path]) -> List[Path]:
    """Packaged locations below the bundle's resource directory."""
    if resource_dir is None:
        return []
    return [
        resource_dir,
        resource_dir / "web-dist",
        resource_dir / "dist",
        resource_dir / "web" / "dist",
        resource_dir / "_up_" / "_up_" / "web" / "dist",
    ]


def search_tree(root: Path, max_depth: int = MAX_SEARCH_DEPTH) -> Optional[Path]:
    """Depth-bounded search below `root` for a directory holding the marker."""
    stack = [(root, 0)]

    while stack:
        directory, depth = stack.pop()
        if has_index(directory):
            return directory

        if depth >= max_depth:
            continue

        try:
            entries = list(os.scandir(directory))
        except OSError:
            continue

        for entry in entries:
            try:
                if entry.is_dir():
                    stack.append((Path(entry.path), depth + 1))
            except OSError:
                continue

    return None


def resolve_web_assets(
    candidates: Sequence[Path],
    search_root: Optional[Path] = None,
    fallback: Optional[Path] = None,
) -> Path:
    """
    Return the first candidate containing `index.html`; else the result of
    a bounded search below `search_root`; else `fallback` (defaults to the
    last candidate) unconditionally.

    The packaged resources always win over the workspace build: pass the
    workspace path as `fallback`, not as a candidate.
    """
    for candidate in candidates:
        if has_index(candidate):
            return candidate

    if search_root is not None:
        found = search_tree(search_root)
        if found is not None:
            return found

    if fallback is None:
        if not candidates:
            raise ValueError("no candidate paths and no fallback given")
        fallback = candidates[-1]

    if not has_index(fallback):
        log.warning("no %s found; falling back to %s", INDEX_MARKER, fallback)
    return fallback
