#!/usr/bin/env python3
"""
Progress bar utilities for consistent UX across pipeline phases.

Provides standardized progress bar formatting with phase prefixes to clearly
indicate which stage of processing is active.
"""

from concurrent.futures import as_completed
from typing import Dict, Iterable, Optional, TypeVar

from tqdm import tqdm

# Phase constants for consistent naming
PHASE_SCAN = "Scan"
PHASE_PROCESS = "Process"

T = TypeVar("T")


def progress_bar(
    iterable: Iterable[T],
    phase: str,
    action: str,
    total: Optional[int] = None,
    unit: str = "file",
    disable: bool = False,
) -> tqdm:
    """Wrap iterable with standardized progress bar.

    Args:
        iterable: The iterable to wrap
        phase: Phase name (use PHASE_* constants)
        action: Action description (e.g., "Scanning media")
        total: Total count if known
        unit: Unit name for display
        disable: Suppress the bar entirely (tests, non-interactive runs)

    Returns:
        tqdm progress bar wrapping the iterable
    """
    return tqdm(iterable, desc=f"[{phase}] {action}", total=total, unit=unit, disable=disable)


def futures_progress(
    futures_dict: Dict,
    phase: str,
    action: str,
    unit: str = "item",
    disable: bool = False,
) -> tqdm:
    """Progress bar for concurrent.futures.as_completed pattern.

    Args:
        futures_dict: Dictionary mapping futures to identifiers
        phase: Phase name (use PHASE_* constants)
        action: Action description (e.g., "Processing memories")
        unit: Unit name for display
        disable: Suppress the bar entirely

    Returns:
        tqdm progress bar wrapping as_completed iterator
    """
    return tqdm(
        as_completed(futures_dict),
        total=len(futures_dict),
        desc=f"[{phase}] {action}",
        unit=unit,
        disable=disable,
    )
