#!/usr/bin/env python3
"""
Common utility functions for the memories pipeline
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Media Type Detection
# ============================================================================

# Supported media extensions
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif", ".tiff", ".tif", ".avif"}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".webm", ".mkv", ".m4v"}


def get_media_type(file_path) -> Optional[str]:
    """Determine media type from file extension

    Args:
        file_path: Path to the file (string or Path object)

    Returns:
        "image" if image file, "video" if video file, None if unsupported

    Example:
        >>> get_media_type("photo.jpg")
        'image'
        >>> get_media_type("video.mp4")
        'video'
        >>> get_media_type("document.pdf")
        None
    """
    ext = os.path.splitext(str(file_path))[1].lower()

    if ext in IMAGE_EXTENSIONS:
        return "image"
    elif ext in VIDEO_EXTENSIONS:
        return "video"
    else:
        return None


# ============================================================================
# Environment Parsing
# ============================================================================


def parse_bool_env(value: str) -> bool:
    """Parse boolean from environment variable string.

    Example:
        >>> parse_bool_env("true")
        True
        >>> parse_bool_env("0")
        False
    """
    return value.strip().lower() in ("true", "1", "yes", "on")


# ============================================================================
# Timestamps
# ============================================================================


def to_exif_datetime(timestamp: datetime) -> str:
    """Format a timestamp the way EXIF date tags expect it.

    Example:
        >>> to_exif_datetime(datetime(2021, 1, 1, 12, tzinfo=timezone.utc))
        '2021:01:01 12:00:00'
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime("%Y:%m:%d %H:%M:%S")


def update_file_timestamps(file_path, timestamp: Optional[datetime]) -> bool:
    """Update filesystem access and modification timestamps to match capture date.

    Args:
        file_path: Path to the file (string or Path object)
        timestamp: Capture time; naive values are treated as UTC

    Returns:
        True if timestamps were updated successfully, False otherwise
    """
    if timestamp is None:
        return False

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    try:
        epoch = timestamp.timestamp()
        os.utime(file_path, (epoch, epoch))
        return True
    except (ValueError, TypeError, OSError) as e:
        logger.warning(f"Failed to update timestamps for {file_path}: {e}")
        return False
