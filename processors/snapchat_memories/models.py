"""Data models for the Snapchat Memories pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from common.errors import InvalidTransition


class MediaKind(str, Enum):
    """Kind of asset a memory record describes."""

    PHOTO = "photo"
    VIDEO = "video"


class FileRole(str, Enum):
    """Role of a file on disk, inferred from its name and content."""

    ORIGINAL = "original"
    OVERLAY = "overlay"


@dataclass(frozen=True)
class GpsCoordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class MemoryRecord:
    """One entry of the metadata export."""

    identifier: str
    timestamp: datetime
    kind: MediaKind
    match_keys: Tuple[str, ...]
    gps: Optional[GpsCoordinate] = None
    # Raw export entry, kept for failure reports
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False, repr=False)


@dataclass(frozen=True)
class MediaFile:
    """One file discovered beneath a media directory."""

    path: Path
    role: FileRole
    identifier: str
    media_type: str  # "image" or "video"

    @property
    def is_overlay(self) -> bool:
        return self.role is FileRole.OVERLAY


class ItemState(str, Enum):
    """Processing state of a work item."""

    MATCHED = "Matched"
    METADATA_APPLIED = "MetadataApplied"
    OVERLAY_COMPOSITED = "OverlayComposited"
    SKIPPED = "Skipped"
    PLACED = "Placed"
    DONE = "Done"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemState.DONE, ItemState.FAILED)


# Allowed forward moves; FAILED is reachable from every non-terminal state
TRANSITIONS = {
    ItemState.MATCHED: {ItemState.METADATA_APPLIED},
    ItemState.METADATA_APPLIED: {ItemState.OVERLAY_COMPOSITED, ItemState.SKIPPED},
    ItemState.OVERLAY_COMPOSITED: {ItemState.PLACED},
    ItemState.SKIPPED: {ItemState.PLACED},
    ItemState.PLACED: {ItemState.DONE},
    ItemState.DONE: set(),
    ItemState.FAILED: set(),
}


@dataclass(frozen=True)
class ItemResult:
    """Terminal outcome of a work item."""

    ok: bool
    final_paths: Tuple[Path, ...] = ()
    cause: Optional[str] = None
    detail: str = ""


@dataclass
class WorkItem:
    """A memory record bound to one original and at most one overlay.

    Mutated only by the worker that owns it.
    """

    record: MemoryRecord
    original: MediaFile
    overlay: Optional[MediaFile] = None
    state: ItemState = ItemState.MATCHED
    result: Optional[ItemResult] = None
    # File the stages operate on: the original itself, or a staged copy of it
    working_path: Optional[Path] = None
    # (candidate output name, current path) pairs waiting for placement
    artifacts: List[Tuple[str, Path]] = field(default_factory=list)
    history: List[ItemState] = field(default_factory=list)

    def __post_init__(self):
        if self.working_path is None:
            self.working_path = self.original.path

    @property
    def identifier(self) -> str:
        return self.original.identifier

    @property
    def media_type(self) -> str:
        return self.original.media_type

    def advance(self, new_state: ItemState) -> None:
        """Move to the next state, rejecting moves the state machine forbids."""
        if self.state.is_terminal:
            raise InvalidTransition(
                f"{self.identifier}: already terminal ({self.state.value}), cannot move to {new_state.value}"
            )
        if new_state is not ItemState.FAILED and new_state not in TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"{self.identifier}: {self.state.value} -> {new_state.value} is not allowed"
            )
        self.history.append(self.state)
        self.state = new_state

    def succeed(self, final_paths: List[Path]) -> None:
        self.advance(ItemState.DONE)
        self.result = ItemResult(ok=True, final_paths=tuple(final_paths))

    def fail(self, cause: str, detail: str = "") -> None:
        self.advance(ItemState.FAILED)
        self.result = ItemResult(ok=False, cause=cause, detail=detail)
