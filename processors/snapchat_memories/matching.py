"""
Filename matching grammar shared by the metadata index and the media scanner.

Snapchat names exported files after the memory's id, e.g.
``2021-01-01_3F2A...-main.jpg`` with a sibling ``2021-01-01_3F2A...-overlay.png``.
Older exports and hand-extracted archives drop the date prefix or use an
underscore before the role marker (``abc.png`` / ``abc_overlay.png``).

All of that knowledge lives here. A different naming convention means a
different MatchStrategy, not extra conditions elsewhere.
"""

import re
from abc import ABC, abstractmethod
from pathlib import PurePath

from processors.snapchat_memories.models import FileRole


class MatchStrategy(ABC):
    """Derives match keys and file roles from names."""

    @abstractmethod
    def key_for(self, name: str) -> str:
        """Return the match key for a filename or record identifier."""

    @abstractmethod
    def role_for(self, name: str) -> FileRole:
        """Return whether a filename names an original or an overlay."""


class SnapchatMatchStrategy(MatchStrategy):
    """Default grammar for Snapchat memories exports."""

    DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}_")
    ROLE_SUFFIX = re.compile(r"[-_](main|overlay)$", re.IGNORECASE)
    OVERLAY_SUFFIX = re.compile(r"[-_]overlay$", re.IGNORECASE)

    def _stem(self, name: str) -> str:
        # Record identifiers have no extension; only strip known-looking suffixes
        path = PurePath(name)
        suffix = path.suffix
        if suffix and 1 < len(suffix) <= 5 and suffix[1:].isalnum():
            return path.stem
        return path.name

    def key_for(self, name: str) -> str:
        stem = self._stem(name)
        stem = self.ROLE_SUFFIX.sub("", stem)
        stem = self.DATE_PREFIX.sub("", stem)
        return stem

    def role_for(self, name: str) -> FileRole:
        if self.OVERLAY_SUFFIX.search(self._stem(name)):
            return FileRole.OVERLAY
        return FileRole.ORIGINAL
