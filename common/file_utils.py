#!/usr/bin/env python3
"""
File utility functions for media processing

Provides content hashing, digest-suffixed naming, content-type sniffing and
atomic moves shared by the scanner, the compositor and the output placer.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterator, Optional

import xxhash
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Read files in 1MB chunks when hashing
HASH_CHUNK_SIZE = 1024 * 1024


def compute_file_hash(file_path: Path) -> str:
    """
    Compute xxHash64 of file contents (fast, non-cryptographic)

    Args:
        file_path: Path to file to hash

    Returns:
        Hexadecimal hash digest (16 characters)
    """
    hasher = xxhash.xxh64()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_bytes_hash(data: bytes) -> str:
    """xxHash64 of an in-memory payload, same digest format as compute_file_hash."""
    return xxhash.xxh64(data).hexdigest()


def candidate_names(name: str, digest: str) -> Iterator[str]:
    """
    Names to try for a file, plain name first, then digest-suffixed.

    Example:
        >>> list(candidate_names("abc.png", "0123456789abcdef"))
        ['abc.png', 'abc_01234567.png', 'abc_0123456789abcdef.png']
    """
    path = Path(name)
    yield name
    yield f"{path.stem}_{digest[:8]}{path.suffix}"
    yield f"{path.stem}_{digest}{path.suffix}"


def sniff_image_format(file_path: Path) -> Optional[str]:
    """
    Identify an image by its content rather than its extension.

    Args:
        file_path: Path to the file to analyze

    Returns:
        Pillow format name ("WEBP", "PNG", "JPEG", ...) or None if the file
        is not an image Pillow can identify

    Example:
        >>> sniff_image_format(Path("abc_overlay.png"))  # WebP content
        'WEBP'
    """
    try:
        with Image.open(file_path) as img:
            return img.format
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Could not identify image content of {file_path}: {e}")
        return None


def is_disguised_webp(file_path: Path) -> bool:
    """True when a file holds WebP content behind a non-WebP extension."""
    if file_path.suffix.lower() == ".webp":
        return False
    return sniff_image_format(file_path) == "WEBP"


def atomic_move(source: Path, destination: Path) -> None:
    """
    Move a file so that it appears at its destination all at once.

    Within one volume this is a plain rename. Across volumes the file is
    first copied to a temporary name next to the destination and then
    renamed, so a partially written file is never visible at the final path.

    Args:
        source: File to move
        destination: Final path (replaced if it already exists)
    """
    try:
        os.replace(source, destination)
        return
    except OSError as e:
        # EXDEV and friends: fall through to copy + rename
        logger.debug(f"Rename {source} -> {destination} failed ({e}), copying instead")

    fd, temp_name = tempfile.mkstemp(
        prefix=".partial-", suffix=destination.suffix, dir=destination.parent
    )
    os.close(fd)
    temp_path = Path(temp_name)
    try:
        shutil.copy2(source, temp_path)
        os.replace(temp_path, destination)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
    source.unlink()
