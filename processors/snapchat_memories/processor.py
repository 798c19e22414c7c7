"""
Snapchat Memories Processor

Runs one pipeline pass: load the metadata export, scan the media
directories, reconcile the two, then tag, composite and place every matched
memory. Setup problems raise FatalError before any item is dispatched;
everything after that is reported per item.
"""

import logging
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from common.dependency_checker import require_exiftool, require_ffmpeg
from common.errors import ConfigError, OutputDirectoryError
from common.exif_writer import ExiftoolMetadataApplier, MetadataApplier
from common.failure_tracker import FailureTracker
from common.overlay import MediaOverlayCompositor, OverlayCompositor
from common.processing import cleanup_staging, print_processing_summary, staging_directory
from common.processor_config import OverlayMode, PipelineConfig
from processors.snapchat_memories.matching import MatchStrategy, SnapchatMatchStrategy
from processors.snapchat_memories.metadata_index import MetadataIndex
from processors.snapchat_memories.models import ItemState, WorkItem
from processors.snapchat_memories.output_placer import OutputPlacer, OutputRegistry
from processors.snapchat_memories.reconciler import Reconciler
from processors.snapchat_memories.scanner import MediaScanner
from processors.snapchat_memories.transform_pool import RunStats, TransformPool

logger = logging.getLogger(__name__)

PROCESSOR_NAME = "Snapchat Memories"


@dataclass
class RunSummary:
    """Outcome of a pipeline run."""

    done: int = 0
    failed: int = 0
    cancelled: int = 0
    # (identifier, cause, detail), sorted by identifier
    failures: List[Tuple[str, str, str]] = field(default_factory=list)
    outputs: List[Path] = field(default_factory=list)
    scan_errors: int = 0
    interrupted: bool = False
    report_path: Optional[Path] = None

    @property
    def total(self) -> int:
        return self.done + self.failed + self.cancelled

    def causes(self) -> List[str]:
        return [cause for _, cause, _ in self.failures]


def prepare_output_dir(output_dir: Path) -> Path:
    """Create output_dir and prove it is writable.

    Raises:
        OutputDirectoryError: directory cannot be created or written
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile(dir=output_dir):
            pass
    except OSError as e:
        raise OutputDirectoryError(f"Output directory {output_dir} is not writable: {e}")
    return output_dir


def _item_paths(item: WorkItem) -> List[Path]:
    paths = [item.original.path]
    if item.overlay is not None:
        paths.append(item.overlay.path)
    return paths


def run_pipeline(
    config: PipelineConfig,
    applier: Optional[MetadataApplier] = None,
    compositor: Optional[OverlayCompositor] = None,
    strategy: Optional[MatchStrategy] = None,
    show_progress: bool = True,
    print_summary: bool = True,
    cancel_event: Optional[threading.Event] = None,
) -> RunSummary:
    """Process a memories export end to end.

    Args:
        config: Run settings
        applier: Tag writer; defaults to exiftool (checked for availability)
        compositor: Overlay compositor; defaults to Pillow/ffmpeg
        strategy: Filename grammar shared by index, scanner and reconciler
        show_progress: Show tqdm progress bars
        print_summary: Print the end-of-run summary to stdout
        cancel_event: Set to stop dispatching further items

    Returns:
        RunSummary with counts, failures and placed output paths

    Raises:
        FatalError: setup failed (export, output directory, tools, config)
    """
    strategy = strategy or SnapchatMatchStrategy()
    if not config.input_dir.is_dir():
        raise ConfigError(f"Input directory not found: {config.input_dir}")

    if applier is None:
        require_exiftool()
        applier = ExiftoolMetadataApplier()
    if compositor is None:
        if config.overlay_mode is not OverlayMode.IGNORE:
            require_ffmpeg()
        compositor = MediaOverlayCompositor()

    index = MetadataIndex.load(config.metadata_file, strategy)
    # Output directory is created only after the export loads
    output_dir = prepare_output_dir(config.output_dir)

    logger.info(f"Scanning {config.input_dir} for '{config.media_prefix}*' directories")
    scanner = MediaScanner(strategy, show_progress=show_progress)
    media_files = scanner.scan(config.input_dir, config.media_prefix)

    reconciled = Reconciler(strategy).reconcile(index, media_files)

    tracker = FailureTracker(PROCESSOR_NAME, str(config.input_dir))
    for error in index.rejected + reconciled.failures:
        tracker.add_error(error)

    # Setup is complete; from here on failures are per item
    stats = RunStats()
    staging = staging_directory(output_dir)
    pool = TransformPool(
        applier=applier,
        compositor=compositor,
        placer=OutputPlacer(output_dir, OutputRegistry()),
        mode=config.overlay_mode,
        workers=config.workers,
        staging_dir=staging,
        keep_input=config.keep_input,
        cancel_event=cancel_event,
        stats=stats,
        show_progress=show_progress,
    )
    try:
        items = pool.run(reconciled.work_items)
    finally:
        cleanup_staging(staging)

    summary = RunSummary(
        done=stats.done,
        failed=stats.failed + len(index.rejected) + len(reconciled.failures),
        cancelled=stats.cancelled,
        scan_errors=len(scanner.scan_errors),
        interrupted=pool.interrupted,
    )
    failures = [(e.identifier, e.cause, e.detail) for e in index.rejected + reconciled.failures]
    for item in items:
        if item.state is ItemState.DONE:
            summary.outputs.extend(item.result.final_paths)
        elif item.state is ItemState.FAILED:
            tracker.add_failure(
                item.identifier, item.result.cause, item.result.detail, paths=_item_paths(item)
            )
            failures.append((item.identifier, item.result.cause, item.result.detail))
    summary.failures = sorted(failures)
    summary.outputs.sort()

    summary.report_path = tracker.handle_failures(output_dir)

    logger.info(
        f"Run finished: {summary.done} done, {summary.failed} failed, {summary.cancelled} cancelled"
    )
    if print_summary:
        print_processing_summary(
            success=summary.done,
            failed=summary.failed,
            total=summary.total,
            output_dir=str(output_dir),
            extra_stats={
                "Cancelled": summary.cancelled,
                "Unreadable directories": summary.scan_errors,
            },
            failures=summary.failures,
        )
    return summary
