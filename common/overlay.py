#!/usr/bin/env python3
"""
Overlay compositing

Composites a Snapchat overlay (caption, stickers, drawings) onto its
original. Overlays are full-frame transparent images, usually WebP content
saved behind a .png or .jpg extension, occasionally animated.

Images are composited with Pillow. Videos are composited frame by frame with
an ffmpeg filter graph, the overlay looped for the length of the video.
"""

import logging
import os
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image

from common.errors import CompositeError

logger = logging.getLogger(__name__)

JPEG_EXTENSIONS = {".jpg", ".jpeg"}


class OverlayCompositor(ABC):
    """Produces a new file with an overlay drawn over an original."""

    @abstractmethod
    def composite(self, original: Path, overlay: Path, target: Path, media_type: str) -> None:
        """Write original + overlay to target.

        Raises:
            CompositeError: compositing failed; target does not exist afterwards
        """


# ============================================================================
# Images
# ============================================================================


def create_image_with_overlay(
    image_path: Path, overlay_path: Path, output_path: Path, quality: int = 95
) -> None:
    """
    Create an image with overlay composited on top.

    EXIF from the base image is carried over to the output.

    Args:
        image_path: Path to the base image
        overlay_path: Path to the overlay image
        output_path: Path for the output image
        quality: JPEG quality (default: 95)

    Raises:
        OSError: either image cannot be read, or the output cannot be written
    """
    with Image.open(image_path) as base_img:
        exif = base_img.info.get("exif")
        base = base_img.convert("RGBA")

    with Image.open(overlay_path) as overlay_img:
        overlay = overlay_img.convert("RGBA")

    if overlay.size != base.size:
        logger.debug(
            f"[{overlay_path.name}] Scaling overlay from {overlay.size[0]}x{overlay.size[1]} "
            f"to {base.size[0]}x{base.size[1]}"
        )
        overlay = overlay.resize(base.size, Image.Resampling.LANCZOS)

    result_img = Image.alpha_composite(base, overlay)

    save_kwargs = {}
    if output_path.suffix.lower() in JPEG_EXTENSIONS:
        result_img = result_img.convert("RGB")
        save_kwargs["quality"] = quality
    if exif:
        save_kwargs["exif"] = exif

    result_img.save(output_path, **save_kwargs)


# ============================================================================
# Videos
# ============================================================================


def get_video_dimensions(video_path: Path) -> Tuple[int, int]:
    """
    Get displayed width and height of the first video stream using ffprobe.

    Rotation metadata is honoured: a 1920x1080 stream tagged with a 90 degree
    rotation is reported as 1080x1920, the size ffmpeg decodes it at.

    Raises:
        RuntimeError: ffprobe failed or reported no video stream
    """
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height",
        "-of",
        "csv=s=x:p=0",
        str(video_path),
    ]
    result = subprocess.run(
        cmd, capture_output=True, text=True, check=False, stdin=subprocess.DEVNULL
    )
    logger.debug(f"[{video_path.name}] ffprobe dimensions: '{result.stdout.strip()}'")
    if result.returncode != 0 or "x" not in result.stdout:
        raise RuntimeError(f"ffprobe could not read dimensions: {result.stderr.strip()}")

    width, height = (int(v) for v in result.stdout.strip().splitlines()[0].split("x")[:2])
    rotation = get_video_rotation(video_path)
    if rotation in (90, 270):
        width, height = height, width
    return width, height


def get_video_rotation(video_path: Path) -> Optional[int]:
    """
    Get video rotation metadata using ffprobe.

    Returns:
        Rotation angle (90, 180, 270) or None if no rotation
    """
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream_tags=rotate:stream_side_data=rotation",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(video_path),
    ]
    result = subprocess.run(
        cmd, capture_output=True, text=True, check=False, stdin=subprocess.DEVNULL
    )
    output = result.stdout.strip()
    if result.returncode != 0 or not output:
        return None
    try:
        rotation = int(float(output.splitlines()[0])) % 360
    except ValueError:
        logger.debug(f"[{video_path.name}] Unparsable rotation value '{output}'")
        return None
    return rotation or None


def is_animated(overlay_path: Path) -> bool:
    with Image.open(overlay_path) as img:
        return bool(getattr(img, "is_animated", False))


def _temp_path(work_dir: Path, suffix: str) -> Path:
    fd, name = tempfile.mkstemp(prefix=".overlay-", suffix=suffix, dir=work_dir)
    os.close(fd)
    return Path(name)


def prepare_overlay(overlay_path: Path, size: Tuple[int, int], work_dir: Path) -> Tuple[Path, bool]:
    """
    Re-encode an overlay into a file ffmpeg reads by its extension.

    Static overlays become a PNG scaled to the video size. Animated overlays
    become an APNG at their own size (scaled by the filter graph instead).

    Returns:
        (path of the prepared overlay, whether it is animated)
    """
    animated = is_animated(overlay_path)
    with Image.open(overlay_path) as img:
        if animated:
            prepared = _temp_path(work_dir, ".apng")
            img.save(prepared, format="PNG", save_all=True, default_image=False)
            return prepared, True

        overlay = img.convert("RGBA")
        if overlay.size != size:
            overlay = overlay.resize(size, Image.Resampling.LANCZOS)
        prepared = _temp_path(work_dir, ".png")
        overlay.save(prepared, format="PNG")
        return prepared, False


def build_video_overlay_command(
    video_path: Path, overlay_path: Path, output_path: Path, size: Tuple[int, int], animated: bool
) -> List[str]:
    """ffmpeg command compositing overlay_path onto every frame of video_path."""
    width, height = size
    if animated:
        overlay_input = ["-stream_loop", "-1", "-f", "apng", "-i", str(overlay_path)]
    else:
        overlay_input = ["-loop", "1", "-i", str(overlay_path)]

    filter_complex = (
        f"[1:v]scale={width}:{height}[ov];"
        f"[0:v][ov]overlay=0:0:shortest=1,format=yuv420p[out]"
    )
    return [
        "ffmpeg",
        "-hide_banner",
        "-i",
        str(video_path),
        *overlay_input,
        "-filter_complex",
        filter_complex,
        "-map",
        "[out]",
        "-map",
        "0:a?",
        "-map_metadata",
        "0",
        "-c:v",
        "libx264",
        "-crf",
        "18",
        "-preset",
        "veryfast",
        "-c:a",
        "copy",
        "-y",
        str(output_path),
    ]


def create_video_with_overlay(video_path: Path, overlay_path: Path, output_path: Path) -> None:
    """
    Composite an overlay onto a video.

    Raises:
        RuntimeError: probing or encoding failed
    """
    size = get_video_dimensions(video_path)
    prepared, animated = prepare_overlay(overlay_path, size, output_path.parent)
    try:
        cmd = build_video_overlay_command(video_path, prepared, output_path, size, animated)
        logger.debug(f"[{video_path.name}] ffmpeg command: {' '.join(cmd)}")
        result = subprocess.run(
            cmd, capture_output=True, text=True, check=False, stdin=subprocess.DEVNULL
        )
        if result.stderr:
            logger.debug(f"[{video_path.name}] ffmpeg stderr:\n{result.stderr}")
        if result.returncode != 0:
            tail = result.stderr.strip().splitlines()[-1:] or [f"exit code {result.returncode}"]
            raise RuntimeError(f"ffmpeg overlay failed: {tail[0]}")
    finally:
        prepared.unlink(missing_ok=True)


class MediaOverlayCompositor(OverlayCompositor):
    """Pillow for stills, ffmpeg for videos."""

    def composite(self, original: Path, overlay: Path, target: Path, media_type: str) -> None:
        original, overlay, target = Path(original), Path(overlay), Path(target)
        try:
            if media_type == "video":
                create_video_with_overlay(original, overlay, target)
            else:
                create_image_with_overlay(original, overlay, target)
        except (OSError, RuntimeError, ValueError) as e:
            target.unlink(missing_ok=True)
            raise CompositeError(original.name, str(e), paths=[original, overlay])
        logger.debug(f"[{original.name}] Composited {overlay.name} into {target.name}")
