#!/usr/bin/env python3
"""
Processing utility functions

Staging directory handling and the standardized end-of-run summary.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

STAGING_DIR_NAME = ".snapback-staging"


def staging_directory(output_dir: Path) -> Path:
    """
    Create and return the staging directory inside output_dir.

    Staging lives on the same volume as the output so that finished
    artifacts can be renamed into place.
    """
    staging = Path(output_dir) / STAGING_DIR_NAME
    staging.mkdir(parents=True, exist_ok=True)
    return staging


def cleanup_staging(staging: Path) -> bool:
    """
    Remove the staging directory.

    Empty directories are removed outright. Leftover files (from cancelled or
    failed items) are removed as well since every input they came from is
    still in place or already reported.

    Returns:
        True if the directory no longer exists
    """
    if not staging.exists():
        return True
    leftovers = [p for p in staging.rglob("*") if p.is_file()]
    if leftovers:
        logger.debug(f"Removing {len(leftovers)} leftover staging files from {staging}")
    try:
        shutil.rmtree(staging)
    except OSError as e:
        logger.warning(f"Could not remove staging directory {staging}: {e}")
        return False
    return True


def print_processing_summary(
    success: int,
    failed: int,
    total: int,
    output_dir: str,
    extra_stats: Optional[Dict[str, int]] = None,
    failures: Optional[List[Tuple[str, str, str]]] = None,
) -> None:
    """
    Print standardized processing completion summary.

    Args:
        success: Number of successfully processed items
        failed: Number of failed items
        total: Total number of items
        output_dir: Path to output directory (will be converted to absolute path)
        extra_stats: Optional dict of additional statistics to display
        failures: Optional (identifier, cause, detail) tuples listed after the counts

    Example:
        >>> print_processing_summary(
        ...     success=1,
        ...     failed=1,
        ...     total=2,
        ...     output_dir="./processed_media",
        ...     extra_stats={"Cancelled": 0},
        ...     failures=[("2021-01-01_abc", "UnmatchedMetadata", "no original file found")],
        ... )
        ==================================================
        Processing complete!
          Successfully processed: 1
          Failed: 1
          Cancelled: 0
          Total: 2

        Failures:
          2021-01-01_abc: UnmatchedMetadata (no original file found)

        Final files saved to: /absolute/path/to/processed_media
    """
    print("\n" + "=" * 50)
    print("Processing complete!")
    print(f"  Successfully processed: {success}")
    print(f"  Failed: {failed}")

    if extra_stats:
        for label, count in extra_stats.items():
            print(f"  {label}: {count}")

    print(f"  Total: {total}")

    if failures:
        print("\nFailures:")
        for identifier, cause, detail in failures:
            line = f"  {identifier}: {cause}"
            if detail:
                line += f" ({detail})"
            print(line)

    print(f"\nFinal files saved to: {os.path.abspath(output_dir)}")
