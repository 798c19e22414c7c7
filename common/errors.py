#!/usr/bin/env python3
"""
Error types for the memories pipeline

Two tiers:
- FatalError subclasses abort the run before any work item is dispatched
- ItemError subclasses are recorded against a single work item; the run continues
"""

from typing import Optional


class SnapbackError(Exception):
    """Base exception for the application."""


# ============================================================================
# Fatal (run-aborting)
# ============================================================================


class FatalError(SnapbackError):
    """Raised for setup problems that make the whole run impossible."""


class MalformedExport(FatalError):
    """Metadata export is missing, unreadable, or has no usable top-level structure."""


class OutputDirectoryError(FatalError):
    """Output directory cannot be created or written to."""


class MissingDependencyError(FatalError):
    """A required external tool (exiftool, ffmpeg, ffprobe) is not available."""


class ConfigError(FatalError):
    """A configuration value is invalid."""


# ============================================================================
# Non-fatal
# ============================================================================


class ScanIOError(SnapbackError):
    """A media directory could not be read. Scanning continues without it."""

    def __init__(self, path, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}")


class InvalidTransition(SnapbackError):
    """A work item was moved between states that are not connected."""


class ItemError(SnapbackError):
    """Failure isolated to a single work item.

    The class name doubles as the failure cause shown in summaries and reports.
    """

    def __init__(
        self,
        identifier: str,
        detail: str = "",
        paths: Optional[list] = None,
        entry: Optional[dict] = None,
    ):
        self.identifier = identifier
        self.detail = detail
        self.paths = [str(p) for p in (paths or [])]
        # Raw export entry, when the failure concerns a metadata record
        self.entry = entry
        message = f"{self.cause} [{identifier}]"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    @property
    def cause(self) -> str:
        return type(self).__name__


class UnmatchedMedia(ItemError):
    """Files on disk with no metadata record."""


class UnmatchedMetadata(ItemError):
    """Metadata record with no original file on disk."""


class AmbiguousMatch(ItemError):
    """More than one original (or overlay) shares an identifier."""


class MalformedRecord(ItemError):
    """A single export entry could not be turned into a memory record."""


class TagError(ItemError):
    """The tag writer exited unsuccessfully."""


class CompositeError(ItemError):
    """The overlay compositor failed."""


class OutputClaimError(ItemError):
    """The artifact could not be claimed or moved into the output directory."""
