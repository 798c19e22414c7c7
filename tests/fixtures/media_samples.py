"""
Minimal media files for testing.

Images are rendered with Pillow at test time so every sample decodes.
The MP4 sample is a bare ftyp box: enough for extension/type detection, not
for decoding.
"""

import io
from pathlib import Path
from typing import Tuple

from PIL import Image

# Minimal MP4 container (ftyp box only)
MINIMAL_MP4 = bytes([
    0x00, 0x00, 0x00, 0x14,  # Box size: 20 bytes
    0x66, 0x74, 0x79, 0x70,  # Box type: 'ftyp'
    0x69, 0x73, 0x6F, 0x6D,  # Major brand: 'isom'
    0x00, 0x00, 0x00, 0x01,  # Minor version
    0x69, 0x73, 0x6F, 0x6D,  # Compatible brand: 'isom'
])

BASE_COLOR = (200, 30, 30, 255)
OVERLAY_COLOR = (255, 255, 255, 255)

PILLOW_FORMATS = {
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
}


def image_bytes(
    fmt: str = "png",
    size: Tuple[int, int] = (8, 8),
    color: Tuple[int, int, int, int] = BASE_COLOR,
) -> bytes:
    """Render a solid-color image in the given format."""
    pillow_format = PILLOW_FORMATS[fmt.lower()]
    img = Image.new("RGBA", size, color)
    if pillow_format == "JPEG":
        img = img.convert("RGB")
    buffer = io.BytesIO()
    img.save(buffer, format=pillow_format)
    return buffer.getvalue()


def overlay_bytes(size: Tuple[int, int] = (4, 4), animated: bool = False) -> bytes:
    """Render a WebP overlay: opaque top half, transparent bottom half.

    Overlays are deliberately smaller than the base images so compositing has
    to scale them.
    """
    width, height = size
    frame = Image.new("RGBA", size, (0, 0, 0, 0))
    frame.paste(Image.new("RGBA", (width, height // 2), OVERLAY_COLOR), (0, 0))

    buffer = io.BytesIO()
    if animated:
        second = Image.new("RGBA", size, (0, 0, 0, 0))
        second.paste(Image.new("RGBA", (width, height // 2), OVERLAY_COLOR), (0, height // 2))
        frame.save(buffer, format="WEBP", save_all=True, append_images=[second], duration=100, loop=0, lossless=True)
    else:
        frame.save(buffer, format="WEBP", lossless=True)
    return buffer.getvalue()


def write_media_file(path: Path, media_type: str = "png", **kwargs) -> Path:
    """Write a minimal media file to the given path.

    Args:
        path: Path where to write the file
        media_type: jpeg, png, webp, mp4, or "overlay" for WebP overlay
            content regardless of the path's extension
        **kwargs: passed to the image renderer (size, color, animated)

    Returns:
        Path to the written file
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    media_type = media_type.lower()

    if media_type in ("mp4", "mov"):
        content = MINIMAL_MP4
    elif media_type == "overlay":
        content = overlay_bytes(**kwargs)
    else:
        content = image_bytes(media_type, **kwargs)

    path.write_bytes(content)
    return path
