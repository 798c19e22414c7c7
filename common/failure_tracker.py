#!/usr/bin/env python3
"""
Failure Tracker Module

Tracks every item a run could not process:
- Orphaned media (files without metadata, ambiguous groups)
- Orphaned metadata (records without files, rejected export entries)
- Processing failures (tagging, compositing or placement errors)

Generates a JSON report and copies the affected files aside for review.
"""

import json
import logging
import shutil
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from common.errors import ItemError
from common.file_utils import candidate_names, compute_bytes_hash, compute_file_hash

logger = logging.getLogger(__name__)

# Causes recorded as matching failures rather than processing failures
MEDIA_MATCHING_CAUSES = {"UnmatchedMedia", "AmbiguousMatch"}
METADATA_MATCHING_CAUSES = {"UnmatchedMetadata", "MalformedRecord"}


class FailureTracker:
    """
    Collects per-item failures of a run.

    Thread-safe: workers may record failures concurrently.
    """

    def __init__(self, processor_name: str, export_directory: str):
        """
        Initialize failure tracker.

        Args:
            processor_name: Name shown in the report
            export_directory: Input root being processed
        """
        self.processor_name = processor_name
        self.export_directory = str(export_directory)
        self.timestamp = datetime.now().isoformat()
        self._lock = threading.Lock()

        self.failures: List[Dict[str, Any]] = []
        # Raw export entries of orphaned or rejected records
        self.orphaned_metadata: List[Dict[str, Any]] = []

    def add_failure(
        self,
        identifier: str,
        cause: str,
        detail: str = "",
        paths: Optional[Iterable] = None,
        metadata_entry: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Track one failed item.

        Args:
            identifier: Memory identifier or match key
            cause: Failure cause (error class name)
            detail: Human-readable detail
            paths: Files involved
            metadata_entry: Raw export entry, saved for orphaned metadata
        """
        entry = {
            "identifier": identifier,
            "cause": cause,
            "detail": detail,
            "paths": [str(p) for p in (paths or [])],
            "context": {},
        }
        with self._lock:
            self.failures.append(entry)
            if metadata_entry is not None and cause in METADATA_MATCHING_CAUSES:
                self.orphaned_metadata.append(
                    {"identifier": identifier, "metadata_entry": metadata_entry, "context": entry["context"]}
                )
        logger.debug(f"Tracked {cause} for {identifier}")

    def add_error(self, error: ItemError) -> None:
        """Track a per-item error raised during matching."""
        self.add_failure(
            error.identifier,
            error.cause,
            error.detail,
            paths=error.paths,
            metadata_entry=error.entry,
        )

    def has_failures(self) -> bool:
        return bool(self.failures)

    def _by_kind(self) -> Dict[str, List[Dict[str, Any]]]:
        kinds: Dict[str, List[Dict[str, Any]]] = {"media": [], "metadata": [], "processing": []}
        for entry in self.failures:
            if entry["cause"] in MEDIA_MATCHING_CAUSES:
                kinds["media"].append(entry)
            elif entry["cause"] in METADATA_MATCHING_CAUSES:
                kinds["metadata"].append(entry)
            else:
                kinds["processing"].append(entry)
        return kinds

    def get_summary(self) -> Dict[str, int]:
        """
        Get summary statistics of tracked failures.

        Returns:
            Dict with counts of each failure type
        """
        kinds = self._by_kind()
        failed_matching = len(kinds["media"]) + len(kinds["metadata"])
        return {
            "total_failures": len(self.failures),
            "failed_matching": failed_matching,
            "failed_processing": len(kinds["processing"]),
        }

    def generate_report(self) -> Dict[str, Any]:
        kinds = self._by_kind()
        return {
            "processor_name": self.processor_name,
            "export_directory": self.export_directory,
            "timestamp": self.timestamp,
            "summary": self.get_summary(),
            "failed_matching": {
                "orphaned_media": kinds["media"],
                "orphaned_metadata": kinds["metadata"],
            },
            "failed_processing": kinds["processing"],
        }

    @staticmethod
    def _free_or_identical(dest_dir: Path, name: str, digest: str) -> Tuple[Path, bool]:
        """
        Pick the destination for a file with the given digest.

        Returns:
            (path, True) when a file with identical content is already there,
            (path, False) for a free name to write to

        Raises:
            OSError: every candidate name holds different content
        """
        for candidate in candidate_names(name, digest):
            dest_path = dest_dir / candidate
            if not dest_path.exists():
                return dest_path, False
            if compute_file_hash(dest_path) == digest:
                return dest_path, True
        raise OSError(f"no free name for {name} in {dest_dir}")

    def copy_orphaned_media(self, output_dir: Path) -> None:
        """
        Copy files of unmatched and ambiguous groups to issues/failed-matching/media.

        Files are copied, never moved; originals stay where they were.
        """
        entries = self._by_kind()["media"]
        sources = [(entry, Path(p)) for entry in entries for p in entry["paths"]]
        if not sources:
            return

        dest_dir = output_dir / "issues" / "failed-matching" / "media"
        dest_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Copying {len(sources)} orphaned media files...")

        copied_count = 0
        for entry, source_path in sources:
            if not source_path.exists():
                logger.warning(f"Orphaned media file no longer exists: {source_path}")
                entry["context"]["copy_error"] = "Source file not found"
                continue

            try:
                dest_path, exists = self._free_or_identical(
                    dest_dir, source_path.name, compute_file_hash(source_path)
                )
                if not exists:
                    shutil.copy2(source_path, dest_path)
                entry["context"].setdefault("copied_to", []).append(
                    str(dest_path.relative_to(output_dir))
                )
                copied_count += 1
            except OSError as e:
                logger.error(f"Failed to copy orphaned media {source_path}: {e}")
                entry["context"]["copy_error"] = str(e)

        logger.info(f"Copied {copied_count}/{len(sources)} orphaned media files")

    def save_orphaned_metadata(self, output_dir: Path) -> None:
        """Save each orphaned export entry as its own JSON file."""
        if not self.orphaned_metadata:
            return

        dest_dir = output_dir / "issues" / "failed-matching" / "metadata"
        dest_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Saving {len(self.orphaned_metadata)} orphaned metadata entries...")

        saved_count = 0
        for idx, orphan in enumerate(self.orphaned_metadata):
            filename = orphan["identifier"] or f"orphaned_metadata_{idx:04d}"
            filename = "".join(c if c.isalnum() or c in "-_" else "_" for c in filename)
            data = json.dumps(
                orphan["metadata_entry"], indent=2, ensure_ascii=False, default=str
            ).encode("utf-8")
            dest_path = dest_dir / f"{filename}.json"

            try:
                dest_path, exists = self._free_or_identical(
                    dest_dir, dest_path.name, compute_bytes_hash(data)
                )
                if not exists:
                    dest_path.write_bytes(data)
                orphan["context"]["metadata_saved_to"] = str(dest_path.relative_to(output_dir))
                saved_count += 1
            except OSError as e:
                logger.error(f"Failed to save orphaned metadata to {dest_path}: {e}")
                orphan["context"]["save_error"] = str(e)

        logger.info(
            f"Saved {saved_count}/{len(self.orphaned_metadata)} orphaned metadata entries"
        )

    def save_report(self, output_dir: Path) -> Optional[Path]:
        """
        Save the failure report to issues/failure-report.json.

        Returns:
            Path of the report, or None when there was nothing to report
        """
        if not self.has_failures():
            logger.info("No failures to report")
            return None

        issues_dir = output_dir / "issues"
        issues_dir.mkdir(parents=True, exist_ok=True)
        report_path = issues_dir / "failure-report.json"

        try:
            with open(report_path, "w", encoding="utf-8") as f:
                json.dump(self.generate_report(), f, indent=2, ensure_ascii=False)
            logger.info(f"Failure report saved to: {report_path}")
        except OSError as e:
            logger.error(f"Failed to save failure report to {report_path}: {e}")
            return None
        return report_path

    def handle_failures(self, output_dir: Path) -> Optional[Path]:
        """
        Copy orphaned files, save orphaned metadata and write the report.

        Returns:
            Path of the failure report, if one was written
        """
        if not self.has_failures():
            return None

        output_path = Path(output_dir)
        logger.info(f"Handling failures for {self.processor_name}...")

        self.copy_orphaned_media(output_path)
        self.save_orphaned_metadata(output_path)
        report_path = self.save_report(output_path)

        summary = self.get_summary()
        logger.info(
            f"Failure handling complete: {summary['failed_matching']} matching failures, "
            f"{summary['failed_processing']} processing failures"
        )
        return report_path
