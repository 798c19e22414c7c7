#!/usr/bin/env python3
"""
Processor Configuration Module

Centralized configuration for the memories pipeline: defaults, environment
variable names, and validation of user-supplied values.

Precedence (highest first): command-line flag, environment variable,
.env file (loaded into the environment by common.env_loader), default.
"""

import os
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from common.errors import ConfigError
from common.utils import parse_bool_env


class OverlayMode(str, Enum):
    """How an overlay is applied to its original."""

    IGNORE = "ignore"  # original passes through untouched
    COPY = "copy"  # composited second artifact, original unchanged
    OVERWRITE = "overwrite"  # original replaced by the composite

    @classmethod
    def parse(cls, value) -> "OverlayMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigError(f"Invalid overlay mode '{value}' (expected one of: {choices})")


# Default values when neither a flag nor the environment provides one
DEFAULT_METADATA_FILE = "./json/memories_history.json"
DEFAULT_INPUT_DIR = "."
DEFAULT_OUTPUT_DIR = "./processed_media"
DEFAULT_MEDIA_PREFIX = "memories"
DEFAULT_WORKERS = 1
DEFAULT_OVERLAY_MODE = OverlayMode.OVERWRITE

# Maps PipelineConfig field -> environment variable
ENV_VARS = {
    "metadata_file": "SNAPBACK_METADATA_FILE",
    "input_dir": "SNAPBACK_INPUT_DIR",
    "output_dir": "SNAPBACK_OUTPUT_DIR",
    "media_prefix": "SNAPBACK_MEDIA_PREFIX",
    "workers": "SNAPBACK_WORKERS",
    "overlay_mode": "SNAPBACK_OVERLAY_MODE",
    "keep_input": "SNAPBACK_KEEP_INPUT",
}


@dataclass(frozen=True)
class PipelineConfig:
    """Settings for one pipeline run"""

    metadata_file: Path = Path(DEFAULT_METADATA_FILE)
    input_dir: Path = Path(DEFAULT_INPUT_DIR)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    media_prefix: str = DEFAULT_MEDIA_PREFIX
    workers: int = DEFAULT_WORKERS
    overlay_mode: OverlayMode = DEFAULT_OVERLAY_MODE
    keep_input: bool = False
    verbose: bool = False

    def __post_init__(self):
        # Normalize loosely typed values (strings from env/CLI)
        object.__setattr__(self, "metadata_file", Path(self.metadata_file))
        object.__setattr__(self, "input_dir", Path(self.input_dir))
        object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "overlay_mode", OverlayMode.parse(self.overlay_mode))

        try:
            workers = int(self.workers)
        except (TypeError, ValueError):
            raise ConfigError(f"Worker count must be an integer, got '{self.workers}'")
        if workers < 1:
            raise ConfigError(f"Worker count must be at least 1, got {workers}")
        object.__setattr__(self, "workers", workers)

        if not self.media_prefix:
            raise ConfigError("Media directory prefix must not be empty")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        """Build a config from SNAPBACK_* environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            PipelineConfig with defaults for anything not set
        """
        if environ is None:
            environ = os.environ

        values = {}
        for field_name, env_name in ENV_VARS.items():
            raw = environ.get(env_name)
            if raw is None or raw == "":
                continue
            if field_name == "keep_input":
                values[field_name] = parse_bool_env(raw)
            else:
                values[field_name] = raw
        return cls(**values)

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """Return a copy with every non-None override applied.

        Used to layer command-line flags on top of the environment.
        """
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        applied = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **applied)
