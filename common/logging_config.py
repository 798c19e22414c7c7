"""
Centralized Logging Configuration

This module provides unified logging configuration for the memories pipeline.
It ensures consistent log formats, levels, and behavior across every module.

Log Level Conventions:
    DEBUG   - File-by-file operations, subprocess command lines, matching details
    INFO    - Phase transitions, counts, high-level progress
    WARNING - Recoverable issues, per-item failures, unreadable directories
    ERROR   - Failures that stop the run or require user attention

Example:
    >>> from common.logging_config import setup_logging
    >>> setup_logging(verbose=True, log_file="processing.log")
    >>> logger = logging.getLogger(__name__)
    >>> logger.info("Processing started")
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

# =============================================================================
# Format Constants - Single source of truth for log formats
# =============================================================================

LOG_FORMAT_DETAILED = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
"""Detailed format including timestamp and module name, used for verbose/file logging."""

LOG_FORMAT_SIMPLE = "%(levelname)s: %(message)s"
"""Simple format for non-verbose console output."""

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
"""Standard date format for all log timestamps."""

LOGS_DIR = Path("logs")

# =============================================================================
# Suppressed Loggers - Third-party libraries that are too noisy
# =============================================================================

SUPPRESSED_LOGGERS: List[str] = [
    "PIL",
    "PIL.Image",
    "PIL.PngImagePlugin",
]
"""List of third-party logger names to suppress to WARNING level."""


def setup_logging(
    verbose: bool = False, log_file: Optional[str] = None
) -> logging.Logger:
    """Configure logging for a pipeline run.

    In info mode (verbose=False):
    - Console shows only ERROR messages (clean output with progress bars)

    In verbose mode (verbose=True):
    - Console shows INFO level messages
    - File captures all DEBUG logs

    Third-party libraries are suppressed to WARNING level in both modes.

    Args:
        verbose: If True, enable verbose console output
        log_file: Optional path to log file for persistent logging

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to avoid duplicates
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO if verbose else logging.ERROR)

    if verbose:
        formatter = logging.Formatter(LOG_FORMAT_DETAILED, datefmt=LOG_DATE_FORMAT)
    else:
        formatter = logging.Formatter(LOG_FORMAT_SIMPLE)

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # Always log everything to file
        file_formatter = logging.Formatter(LOG_FORMAT_DETAILED, datefmt=LOG_DATE_FORMAT)
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    for library in SUPPRESSED_LOGGERS:
        logging.getLogger(library).setLevel(logging.WARNING)

    return root_logger


def default_log_file(prefix: str = "snapback") -> Path:
    """Create the logs/ directory and return a timestamped log file path.

    Example:
        >>> default_log_file()
        PosixPath('logs/snapback_20250101_120000.log')
    """
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    return LOGS_DIR / f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
