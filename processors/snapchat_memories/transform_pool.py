"""
Transform pool

Drives work items through tagging, overlay compositing and placement on a
fixed-size thread pool. Workers spend nearly all their time blocked on
exiftool/ffmpeg subprocesses, so threads rather than processes.
"""

import logging
import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

from common.errors import CompositeError, ItemError
from common.exif_writer import MetadataApplier
from common.file_utils import atomic_move
from common.overlay import OverlayCompositor
from common.processing import STAGING_DIR_NAME
from common.processor_config import OverlayMode
from common.progress import PHASE_PROCESS, futures_progress
from common.utils import update_file_timestamps
from processors.snapchat_memories.models import ItemState, WorkItem
from processors.snapchat_memories.output_placer import OutputPlacer

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "UnexpectedError"


class RunStats:
    """Done / failed / cancelled counters shared by the workers of one run."""

    def __init__(self):
        self.lock = threading.Lock()
        self.done = 0
        self.failed = 0
        self.cancelled = 0

    def record(self, item: WorkItem) -> None:
        with self.lock:
            if item.state is ItemState.DONE:
                self.done += 1
            elif item.state is ItemState.FAILED:
                self.failed += 1
            else:
                self.cancelled += 1

    def as_dict(self):
        with self.lock:
            return {"done": self.done, "failed": self.failed, "cancelled": self.cancelled}


def composited_name(name: str) -> str:
    """
    Output name of the composited copy.

    Example:
        >>> composited_name("abc.png")
        'abc_composited.png'
    """
    path = Path(name)
    return f"{path.stem}_composited{path.suffix}"


class TransformPool:
    """Bounded-concurrency executor for work items."""

    def __init__(
        self,
        applier: MetadataApplier,
        compositor: OverlayCompositor,
        placer: OutputPlacer,
        mode: OverlayMode = OverlayMode.OVERWRITE,
        workers: int = 1,
        staging_dir: Optional[Path] = None,
        keep_input: bool = False,
        cancel_event: Optional[threading.Event] = None,
        stats: Optional[RunStats] = None,
        show_progress: bool = True,
    ):
        self.applier = applier
        self.compositor = compositor
        self.placer = placer
        self.mode = OverlayMode.parse(mode)
        self.workers = max(1, int(workers))
        self.staging_dir = Path(staging_dir) if staging_dir else placer.output_dir / STAGING_DIR_NAME
        self.keep_input = keep_input
        self.cancel_event = cancel_event or threading.Event()
        self.stats = stats or RunStats()
        self.show_progress = show_progress
        self.interrupted = False

    # ------------------------------------------------------------------
    # Pool
    # ------------------------------------------------------------------

    def run(self, items: List[WorkItem]) -> List[WorkItem]:
        """Process every item; returns the same items, each terminal or untouched.

        Untouched items are those cancelled before a worker started them.
        """
        if not items:
            return items

        self.staging_dir.mkdir(parents=True, exist_ok=True)
        for item in items:
            self.placer.reserve(item.identifier, self.planned_names(item))
        logger.info(f"Processing {len(items)} items with {self.workers} workers (overlay mode: {self.mode.value})")

        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="snapback")
        future_to_item = {}
        try:
            future_to_item = {executor.submit(self.process_item, item): item for item in items}
            try:
                for future in futures_progress(
                    future_to_item,
                    PHASE_PROCESS,
                    "Processing memories",
                    disable=not self.show_progress,
                ):
                    future.result()
            except KeyboardInterrupt:
                logger.warning("Interrupted: waiting for in-flight items, skipping the rest")
                self.interrupted = True
                self.cancel_event.set()
                executor.shutdown(wait=True, cancel_futures=True)
        finally:
            executor.shutdown(wait=True)

        # Futures cancelled before starting never reached a worker
        for future, item in future_to_item.items():
            if future.cancelled():
                self.stats.record(item)

        return items

    def planned_names(self, item: WorkItem) -> List[str]:
        """Output names an item will ask for, before any suffixing."""
        name = item.original.path.name
        if item.overlay is not None and self.mode is OverlayMode.COPY:
            return [name, composited_name(name)]
        return [name]

    def process_item(self, item: WorkItem) -> WorkItem:
        """Worker entry point. Never raises; failures end up on the item."""
        if self.cancel_event.is_set():
            logger.debug(f"[{item.identifier}] Cancelled before start")
            self.stats.record(item)
            return item

        item_dir = self.staging_dir / item.identifier
        try:
            self._run_stages(item, item_dir)
        except ItemError as e:
            logger.warning(f"[{item.identifier}] {e.cause}: {e.detail}")
            self._fail(item, e.cause, e.detail)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"[{item.identifier}] Unexpected error: {e}")
            logger.debug(f"[{item.identifier}] Traceback", exc_info=True)
            self._fail(item, UNEXPECTED_ERROR, f"{type(e).__name__}: {e}")
        finally:
            if item_dir.exists():
                shutil.rmtree(item_dir, ignore_errors=True)

        self.stats.record(item)
        return item

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run_stages(self, item: WorkItem, item_dir: Path) -> None:
        record = item.record
        name = item.original.path.name

        if self.keep_input:
            item_dir.mkdir(parents=True, exist_ok=True)
            item.working_path = item_dir / name
            shutil.copy2(item.original.path, item.working_path)

        # 1. tags
        self.applier.write_tags(item.working_path, record.timestamp, record.gps, item.media_type)
        item.advance(ItemState.METADATA_APPLIED)
        logger.debug(f"[{item.identifier}] Tagged {item.working_path}")

        # 2. overlay
        if item.overlay is None or self.mode is OverlayMode.IGNORE:
            item.artifacts = [(name, item.working_path)]
            item.advance(ItemState.SKIPPED)
        else:
            item_dir.mkdir(parents=True, exist_ok=True)
            target = item_dir / composited_name(name)
            self.compositor.composite(item.working_path, item.overlay.path, target, item.media_type)
            # Composite is a new file; tags do not survive re-encoding reliably
            self.applier.write_tags(target, record.timestamp, record.gps, item.media_type)

            if self.mode is OverlayMode.OVERWRITE:
                try:
                    atomic_move(target, item.working_path)
                except OSError as e:
                    raise CompositeError(item.identifier, f"cannot replace original: {e}")
                item.artifacts = [(name, item.working_path)]
            else:
                item.artifacts = [(name, item.working_path), (composited_name(name), target)]
            item.advance(ItemState.OVERLAY_COMPOSITED)

        # 3. placement
        final_paths = self.placer.place(item)
        item.advance(ItemState.PLACED)

        # 4. filesystem times
        for path in final_paths:
            update_file_timestamps(path, record.timestamp)

        item.succeed(final_paths)

    def _fail(self, item: WorkItem, cause: str, detail: str) -> None:
        if not item.state.is_terminal:
            item.fail(cause, detail)
