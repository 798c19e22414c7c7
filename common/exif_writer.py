#!/usr/bin/env python3
"""
Metadata writer

Writes capture date and GPS tags into a single media file with exiftool.

Images get EXIF dates plus GPS as absolute values with N/S/E/W reference
tags. Videos get QuickTime dates (UTC) plus signed GPS values, from which
exiftool derives the QuickTime location atom itself.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from common.errors import TagError
from common.utils import to_exif_datetime

logger = logging.getLogger(__name__)


class MetadataApplier(ABC):
    """Writes capture metadata into a media file in place."""

    @abstractmethod
    def write_tags(
        self,
        path: Path,
        timestamp: datetime,
        gps,
        media_type: str,
    ) -> None:
        """Write timestamp and (optional) GPS tags into path.

        Args:
            path: File to modify in place
            timestamp: Capture time (timezone-aware)
            gps: GpsCoordinate or None
            media_type: "image" or "video"

        Raises:
            TagError: the tags could not be written
        """


def build_exiftool_args(path: Path, timestamp: datetime, gps, media_type: str) -> List[str]:
    """Assemble the exiftool argument list for one file.

    Example:
        >>> build_exiftool_args(Path("abc.png"), dt, None, "image")[-1]
        'abc.png'
    """
    exif_date = to_exif_datetime(timestamp)
    args = ["-overwrite_original", "-api", "largefilesupport=1"]

    if media_type == "video":
        # QuickTime dates are stored in UTC by convention
        args += ["-api", "QuickTimeUTC=1"]
        exif_date = f"{exif_date}+00:00"

    args += [
        f"-DateTimeOriginal={exif_date}",
        f"-CreateDate={exif_date}",
        f"-ModifyDate={exif_date}",
    ]

    if gps is not None:
        lat = float(gps.latitude)
        lon = float(gps.longitude)
        if media_type == "image":
            args += [
                f"-GPSLatitude={abs(lat)}",
                f"-GPSLatitudeRef={'N' if lat >= 0 else 'S'}",
                f"-GPSLongitude={abs(lon)}",
                f"-GPSLongitudeRef={'E' if lon >= 0 else 'W'}",
            ]
        else:
            args += [f"-GPSLatitude={lat}", f"-GPSLongitude={lon}"]

    args.append(str(path))
    return args


class ExiftoolMetadataApplier(MetadataApplier):
    """MetadataApplier backed by the exiftool command line tool."""

    def __init__(self, executable: str = "exiftool"):
        self.executable = executable

    def write_tags(self, path: Path, timestamp: datetime, gps, media_type: str) -> None:
        path = Path(path)
        cmd = [self.executable, *build_exiftool_args(path, timestamp, gps, media_type)]
        logger.debug(f"[{path.name}] exiftool command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise TagError(path.name, f"cannot run {self.executable}: {e}", paths=[path])

        if result.stderr:
            logger.debug(f"[{path.name}] exiftool stderr: {result.stderr.strip()}")

        if result.returncode != 0:
            detail = _first_line(result.stderr) or f"exit code {result.returncode}"
            raise TagError(path.name, f"exiftool failed: {detail}", paths=[path])


def _first_line(text: Optional[str]) -> str:
    for line in (text or "").splitlines():
        if line.strip():
            return line.strip()
    return ""
