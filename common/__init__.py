"""
Common modules shared by the memories pipeline.

This package contains the ambient layers (configuration, logging, errors,
progress bars, failure reports) and the wrappers around external tools.
"""

from .errors import FatalError, ItemError, SnapbackError
from .logging_config import setup_logging
from .processor_config import OverlayMode, PipelineConfig
from .dependency_checker import check_exiftool, check_ffmpeg

__version__ = "0.1.0"
__all__ = [
    "FatalError",
    "ItemError",
    "SnapbackError",
    "setup_logging",
    "OverlayMode",
    "PipelineConfig",
    "check_exiftool",
    "check_ffmpeg",
]
