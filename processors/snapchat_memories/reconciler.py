"""
Reconciler

Joins scanned media files with metadata records. Every file and every record
ends up either in exactly one WorkItem or in the failure list.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from common.errors import AmbiguousMatch, ItemError, UnmatchedMedia, UnmatchedMetadata
from processors.snapchat_memories.matching import MatchStrategy, SnapchatMatchStrategy
from processors.snapchat_memories.metadata_index import MetadataIndex
from processors.snapchat_memories.models import MediaFile, WorkItem

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    work_items: List[WorkItem] = field(default_factory=list)
    failures: List[ItemError] = field(default_factory=list)


class Reconciler:
    """Pairs originals with overlays and binds each pair to its record."""

    def __init__(self, strategy: Optional[MatchStrategy] = None):
        self.strategy = strategy or SnapchatMatchStrategy()

    def group(self, media_files: Iterable[MediaFile]) -> Dict[str, List[MediaFile]]:
        """Group files by match key, each group sorted by path."""
        groups: Dict[str, List[MediaFile]] = defaultdict(list)
        for media_file in media_files:
            groups[media_file.identifier].append(media_file)
        return {key: sorted(files, key=lambda m: str(m.path)) for key, files in groups.items()}

    def reconcile(self, index: MetadataIndex, media_files: Iterable[MediaFile]) -> ReconcileResult:
        """Build work items for every record that has an original on disk.

        Args:
            index: Parsed metadata export
            media_files: Output of MediaScanner.scan

        Returns:
            ReconcileResult with work items and per-item failures, both
            sorted by identifier
        """
        result = ReconcileResult()
        claimed: Set[str] = set()  # identifiers of records that are accounted for
        stray_overlays: Dict[str, List[Path]] = {}

        for key, files in sorted(self.group(media_files).items()):
            originals = [f for f in files if not f.is_overlay]
            overlays = [f for f in files if f.is_overlay]
            record = index.lookup(key)

            if len(originals) > 1 or len(overlays) > 1:
                if record is not None:
                    claimed.add(record.identifier)
                result.failures.append(
                    AmbiguousMatch(
                        key,
                        f"{len(originals)} originals and {len(overlays)} overlays share this identifier",
                        paths=[f.path for f in files],
                    )
                )
                continue

            if not originals:
                if record is not None:
                    # Reported with the record as UnmatchedMetadata below
                    stray_overlays[record.identifier] = [f.path for f in files]
                else:
                    result.failures.append(
                        UnmatchedMedia(key, "overlay without an original", paths=[f.path for f in files])
                    )
                continue

            if record is None:
                result.failures.append(
                    UnmatchedMedia(key, "no metadata record", paths=[f.path for f in files])
                )
                continue

            original = originals[0]
            overlay = overlays[0] if overlays else None
            expected = "video" if record.kind.value == "video" else "image"
            if original.media_type != expected:
                logger.debug(
                    f"[{key}] Record says {record.kind.value}, file {original.path.name} is {original.media_type}"
                )

            claimed.add(record.identifier)
            result.work_items.append(WorkItem(record=record, original=original, overlay=overlay))

        for record in index.records():
            if record.identifier not in claimed:
                result.failures.append(
                    UnmatchedMetadata(
                        record.identifier,
                        "no original file found",
                        paths=stray_overlays.get(record.identifier),
                        entry=record.raw,
                    )
                )

        result.work_items.sort(key=lambda item: item.identifier)
        result.failures.sort(key=lambda error: (error.identifier, error.cause))

        logger.info(
            f"Reconciled {len(result.work_items)} work items, {len(result.failures)} unmatched or ambiguous"
        )
        return result
