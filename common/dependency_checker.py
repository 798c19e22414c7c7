#!/usr/bin/env python3
"""
Dependency Checker for the memories pipeline

Provides centralized checking for the system-level tools (exiftool, ffmpeg,
ffprobe) wrapped by the tag writer and the video compositor.
"""

import subprocess

from common.errors import MissingDependencyError

INSTALL_HINTS = {
    "exiftool": [
        "  macOS: brew install exiftool",
        "  Linux: sudo apt-get install libimage-exiftool-perl",
        "  Windows: Download from https://exiftool.org/",
    ],
    "ffmpeg": [
        "  macOS: brew install ffmpeg",
        "  Linux: sudo apt-get install ffmpeg",
        "  Windows: Download from https://ffmpeg.org/",
    ],
}
# ffprobe ships with ffmpeg
INSTALL_HINTS["ffprobe"] = INSTALL_HINTS["ffmpeg"]

VERSION_FLAGS = {
    "exiftool": "-ver",
    "ffmpeg": "-version",
    "ffprobe": "-version",
}


def _tool_runs(tool: str) -> bool:
    try:
        subprocess.run(
            [tool, VERSION_FLAGS[tool]],
            capture_output=True,
            check=True,
            stdin=subprocess.DEVNULL,
        )
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def check_exiftool() -> bool:
    """Check if exiftool is installed and available in PATH"""
    return _tool_runs("exiftool")


def check_ffmpeg() -> bool:
    """Check if ffmpeg and ffprobe are installed and available in PATH"""
    return _tool_runs("ffmpeg") and _tool_runs("ffprobe")


def install_hint(tool: str) -> str:
    """Installation instructions for a tool, one line per platform"""
    lines = [f"{tool} is not installed or not in PATH", f"Please install {tool}:"]
    lines.extend(INSTALL_HINTS.get(tool, []))
    return "\n".join(lines)


def require_exiftool() -> None:
    """Raise MissingDependencyError unless exiftool is usable"""
    if not check_exiftool():
        raise MissingDependencyError(install_hint("exiftool"))


def require_ffmpeg() -> None:
    """Raise MissingDependencyError unless ffmpeg and ffprobe are usable"""
    if not check_ffmpeg():
        raise MissingDependencyError(install_hint("ffmpeg"))
