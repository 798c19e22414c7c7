"""
Media scanner

Walks the media directories of an export (``memories``, ``memories 2``, ...)
and classifies each media file as an original or an overlay.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from common.errors import ScanIOError
from common.file_utils import is_disguised_webp
from common.filter_banned_files import BannedFilesFilter
from common.progress import PHASE_SCAN, progress_bar
from common.utils import get_media_type
from processors.snapchat_memories.matching import MatchStrategy, SnapchatMatchStrategy
from processors.snapchat_memories.models import FileRole, MediaFile

logger = logging.getLogger(__name__)


class MediaScanner:
    """Read-only enumeration of media files beneath prefixed directories."""

    def __init__(
        self,
        strategy: Optional[MatchStrategy] = None,
        banned_filter: Optional[BannedFilesFilter] = None,
        show_progress: bool = False,
    ):
        self.strategy = strategy or SnapchatMatchStrategy()
        self.banned_filter = banned_filter or BannedFilesFilter()
        self.show_progress = show_progress
        self.scan_errors: List[ScanIOError] = []
        self.skipped = 0

    def media_directories(self, root: Path, prefix: str) -> List[Path]:
        """Directories directly under root whose names start with prefix."""
        try:
            entries = sorted(root.iterdir())
        except OSError as e:
            self._record_error(root, e)
            return []
        return [
            entry
            for entry in entries
            if entry.is_dir()
            and entry.name.startswith(prefix)
            and not self.banned_filter.is_banned_name(entry.name)
        ]

    def scan(self, root, prefix: str) -> List[MediaFile]:
        """Enumerate media files below root/<prefix>*.

        Unreadable directories are recorded in scan_errors and skipped.

        Args:
            root: Input root directory
            prefix: Directory name prefix selecting media directories

        Returns:
            MediaFiles sorted by path
        """
        root = Path(root)
        self.scan_errors = []
        self.skipped = 0

        found: List[MediaFile] = []
        directories = self.media_directories(root, prefix)
        if not directories:
            logger.warning(f"No directories matching '{prefix}*' under {root}")

        for directory in progress_bar(
            directories, PHASE_SCAN, "Scanning media directories", unit="dir", disable=not self.show_progress
        ):
            logger.debug(f"Scanning {directory}")
            for dirpath, dirnames, filenames in os.walk(
                directory, onerror=lambda e: self._record_error(Path(e.filename or directory), e)
            ):
                current = Path(dirpath)
                # Prune banned directories in place so os.walk never descends into them
                dirnames[:] = sorted(
                    d for d in dirnames if not self.banned_filter.is_banned_name(d)
                )
                for filename in sorted(filenames):
                    media_file = self._classify(current / filename)
                    if media_file is None:
                        self.skipped += 1
                    else:
                        found.append(media_file)

        found.sort(key=lambda m: str(m.path))
        overlays = sum(1 for m in found if m.is_overlay)
        logger.info(
            f"Scanned {len(directories)} media directories: "
            f"{len(found) - overlays} originals, {overlays} overlays, "
            f"{self.skipped} skipped, {len(self.scan_errors)} unreadable"
        )
        return found

    def _classify(self, path: Path) -> Optional[MediaFile]:
        if self.banned_filter.is_banned_name(path.name):
            logger.debug(f"Skipping system file: {path}")
            return None

        media_type = get_media_type(path)
        if media_type is None:
            logger.debug(f"Skipping non-media file: {path}")
            return None

        role = self.strategy.role_for(path.name)
        if role is FileRole.ORIGINAL and media_type == "image" and is_disguised_webp(path):
            logger.debug(f"WebP content behind {path.suffix}: treating {path.name} as overlay")
            role = FileRole.OVERLAY

        return MediaFile(
            path=path.resolve(),
            role=role,
            identifier=self.strategy.key_for(path.name),
            media_type=media_type,
        )

    def _record_error(self, path: Path, error: OSError) -> None:
        scan_error = ScanIOError(path, str(error))
        logger.warning(f"Cannot read media directory {scan_error}")
        self.scan_errors.append(scan_error)
