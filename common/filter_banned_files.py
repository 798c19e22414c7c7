#!/usr/bin/env python3
"""
System file filter

Decides which directory entries a media scan must never treat as memories:
OS metadata files, NAS thumbnail trees and photo-manager side directories.
"""

from pathlib import Path
from typing import Iterable, List, Optional

# Exact names
BANNED_NAMES = frozenset(
    {
        ".DS_Store",  # macOS folder attributes
        "Thumbs.db",  # Windows thumbnail cache
        "desktop.ini",
        "@eaDir",  # Synology NAS index directory
        "@__thumb",  # QNAP thumbnail directory
        ".photostructure",
        "Lightroom Catalog",
    }
)

# Name prefixes
BANNED_PREFIXES = (
    "._",  # AppleDouble resource forks
    "SYNOFILE_THUMB_",  # Synology thumbnails
    ".partial-",  # interrupted atomic moves
)


class BannedFilesFilter:
    """Matches paths whose name, or any parent directory name, is banned."""

    def __init__(self, extra_names: Optional[Iterable[str]] = None):
        self.names = set(BANNED_NAMES)
        if extra_names:
            self.names.update(extra_names)

    def is_banned_name(self, name: str) -> bool:
        return name in self.names or name.startswith(BANNED_PREFIXES)

    def is_banned(self, path: Path, root: Optional[Path] = None) -> bool:
        """
        Check a path against the banned names.

        Args:
            path: File or directory to check
            root: When given, only path components below root are checked

        Returns:
            True if the entry should be skipped
        """
        parts: List[str] = list(path.relative_to(root).parts) if root else [path.name]
        return any(self.is_banned_name(part) for part in parts)
