"""
Output placement

Moves finished artifacts into the output directory under names no other
artifact of the run can obtain, reusing byte-identical files left by
earlier runs instead of adding suffixed copies.

Plain names are reserved before any worker starts, in work-item order. An
item never loses its reserved name to a faster worker.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from common.errors import OutputClaimError
from common.file_utils import atomic_move, candidate_names, compute_file_hash
from processors.snapchat_memories.models import WorkItem

logger = logging.getLogger(__name__)


class OutputRegistry:
    """Run-wide record of claimed output names and their content digests.

    One instance per run, shared by every worker.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.claims: Dict[str, str] = {}
        # plain name -> identifier of the item it is held for
        self.reservations: Dict[str, str] = {}

    def __contains__(self, name: str) -> bool:
        return name in self.claims

    def __len__(self) -> int:
        return len(self.claims)

    def reserve(self, name: str, owner: str) -> bool:
        """Hold a plain name for one owner. First reservation wins."""
        with self.lock:
            if name in self.reservations:
                return False
            self.reservations[name] = owner
            return True

    def available_to(self, name: str, owner: Optional[str]) -> bool:
        if name in self.claims:
            return False
        holder = self.reservations.get(name)
        return holder is None or holder == owner


class OutputPlacer:
    """Claims output names and moves artifacts into place."""

    def __init__(self, output_dir, registry: Optional[OutputRegistry] = None):
        self.output_dir = Path(output_dir)
        self.registry = registry if registry is not None else OutputRegistry()

    def reserve(self, owner: str, names: Iterable[str]) -> None:
        for name in names:
            if not self.registry.reserve(name, owner):
                logger.debug(f"[{owner}] {name} is reserved by an earlier item")

    def claim_and_move(self, candidate_name: str, source_path: Path, owner: Optional[str] = None) -> Path:
        """Move source_path into the output directory.

        Args:
            candidate_name: Preferred output filename
            source_path: Finished artifact
            owner: Identifier of the work item placing it; names reserved for
                other items are skipped

        Returns:
            Final path of the artifact

        Raises:
            OutputClaimError: every candidate is taken, or the move failed
        """
        source_path = Path(source_path)
        try:
            digest = compute_file_hash(source_path)
        except OSError as e:
            raise OutputClaimError(candidate_name, f"cannot read artifact {source_path}: {e}")

        with self.registry.lock:
            for candidate in candidate_names(candidate_name, digest):
                if not self.registry.available_to(candidate, owner):
                    continue

                destination = self.output_dir / candidate
                if destination.exists():
                    try:
                        existing = compute_file_hash(destination)
                    except OSError as e:
                        logger.debug(f"Cannot hash existing {destination}: {e}")
                        continue
                    if existing != digest:
                        continue
                    logger.debug(f"{candidate} already holds identical content, replacing")

                try:
                    atomic_move(source_path, destination)
                except OSError as e:
                    raise OutputClaimError(
                        candidate_name, f"move to {destination} failed: {e}", paths=[source_path]
                    )
                self.registry.claims[candidate] = digest
                if candidate != candidate_name:
                    logger.info(f"{candidate_name} is taken, placed as {candidate}")
                return destination

        raise OutputClaimError(
            candidate_name, "all candidate output names are taken", paths=[source_path]
        )

    def place(self, item: WorkItem, artifacts: Optional[List[Tuple[str, Path]]] = None) -> List[Path]:
        """Claim every artifact of a work item.

        Returns:
            Final paths, in artifact order

        Raises:
            OutputClaimError: an artifact could not be placed; artifacts
                placed before it are listed in the error
        """
        artifacts = item.artifacts if artifacts is None else artifacts
        final_paths: List[Path] = []
        for candidate_name, path in artifacts:
            try:
                final_path = self.claim_and_move(candidate_name, path, owner=item.identifier)
            except OutputClaimError as e:
                if not final_paths:
                    raise
                placed = ", ".join(str(p) for p in final_paths)
                raise OutputClaimError(
                    item.identifier,
                    f"{e.detail}; already placed: {placed}",
                    paths=e.paths + final_paths,
                )
            logger.debug(f"[{item.identifier}] Placed {final_path}")
            final_paths.append(final_path)
        return final_paths
