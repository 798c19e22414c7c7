"""
Tests for overlay compositing.

Image compositing runs for real through Pillow. Video compositing is only
checked at the command level here; encoding is covered by the integration
tests when ffmpeg is installed.
"""

from pathlib import Path

import pytest
from PIL import Image

from common.errors import CompositeError
from common.overlay import (
    MediaOverlayCompositor,
    build_video_overlay_command,
    create_image_with_overlay,
    is_animated,
    prepare_overlay,
)
from tests.fixtures.media_samples import BASE_COLOR, OVERLAY_COLOR, write_media_file


def close(pixel, expected, tolerance=16):
    """Resampling blurs the overlay edge a little."""
    return all(abs(a - b) <= tolerance for a, b in zip(pixel, expected))


class TestImageComposite:
    def test_overlay_scaled_to_base(self, tmp_path):
        base = write_media_file(tmp_path / "abc.png", "png", size=(16, 16))
        overlay = write_media_file(tmp_path / "abc_overlay.png", "overlay", size=(4, 4))
        target = tmp_path / "abc_composited.png"

        create_image_with_overlay(base, overlay, target)

        with Image.open(target) as result:
            assert result.size == (16, 16)
            rgba = result.convert("RGBA")
            assert close(rgba.getpixel((8, 1)), OVERLAY_COLOR)
            assert close(rgba.getpixel((8, 14)), BASE_COLOR)

    def test_jpeg_output(self, tmp_path):
        base = write_media_file(tmp_path / "abc.jpg", "jpg", size=(16, 16))
        overlay = write_media_file(tmp_path / "abc_overlay.jpg", "overlay")
        target = tmp_path / "abc_composited.jpg"

        create_image_with_overlay(base, overlay, target)

        with Image.open(target) as result:
            assert result.format == "JPEG"
            assert result.mode == "RGB"

    def test_exif_carried_over(self, tmp_path):
        base = tmp_path / "abc.jpg"
        exif = Image.Exif()
        exif[0x0132] = "2021:01:01 12:00:00"  # DateTime
        Image.new("RGB", (16, 16), BASE_COLOR[:3]).save(base, format="JPEG", exif=exif.tobytes())
        overlay = write_media_file(tmp_path / "abc_overlay.png", "overlay")
        target = tmp_path / "abc_composited.jpg"

        create_image_with_overlay(base, overlay, target)

        with Image.open(target) as result:
            assert result.getexif().get(0x0132) == "2021:01:01 12:00:00"


class TestMediaOverlayCompositor:
    def test_image(self, tmp_path):
        base = write_media_file(tmp_path / "abc.png", "png")
        overlay = write_media_file(tmp_path / "abc_overlay.png", "overlay")
        target = tmp_path / "out.png"

        MediaOverlayCompositor().composite(base, overlay, target, "image")

        assert target.exists()
        assert base.read_bytes() != target.read_bytes()

    def test_corrupt_overlay(self, tmp_path):
        base = write_media_file(tmp_path / "abc.png", "png")
        overlay = tmp_path / "abc_overlay.png"
        overlay.write_bytes(b"not an image")
        target = tmp_path / "out.png"

        with pytest.raises(CompositeError) as exc_info:
            MediaOverlayCompositor().composite(base, overlay, target, "image")

        assert exc_info.value.identifier == "abc.png"
        assert not target.exists()

    def test_missing_original(self, tmp_path):
        overlay = write_media_file(tmp_path / "abc_overlay.png", "overlay")
        with pytest.raises(CompositeError):
            MediaOverlayCompositor().composite(tmp_path / "abc.png", overlay, tmp_path / "out.png", "image")


class TestVideoPreparation:
    def test_static_overlay_becomes_scaled_png(self, tmp_path):
        overlay = write_media_file(tmp_path / "abc_overlay.png", "overlay", size=(4, 4))

        prepared, animated = prepare_overlay(overlay, (32, 64), tmp_path)

        assert not animated
        assert prepared.suffix == ".png"
        with Image.open(prepared) as img:
            assert img.size == (32, 64)
            assert img.mode == "RGBA"

    def test_animated_overlay_becomes_apng(self, tmp_path):
        overlay = write_media_file(tmp_path / "abc_overlay.png", "overlay", animated=True)
        assert is_animated(overlay)

        prepared, animated = prepare_overlay(overlay, (32, 64), tmp_path)

        assert animated
        assert prepared.suffix == ".apng"
        with Image.open(prepared) as img:
            assert img.format == "PNG"
            assert getattr(img, "n_frames", 1) == 2

    def test_static_command(self):
        cmd = build_video_overlay_command(
            Path("in.mp4"), Path("ov.png"), Path("out.mp4"), (1080, 1920), animated=False
        )

        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-loop") + 1] == "1"
        assert "-stream_loop" not in cmd
        graph = cmd[cmd.index("-filter_complex") + 1]
        assert "scale=1080:1920" in graph
        assert "shortest=1" in graph
        assert cmd[cmd.index("-map_metadata") + 1] == "0"
        assert "0:a?" in cmd
        assert cmd[-1] == "out.mp4"

    def test_animated_command(self):
        cmd = build_video_overlay_command(
            Path("in.mp4"), Path("ov.apng"), Path("out.mp4"), (1080, 1920), animated=True
        )

        assert cmd[cmd.index("-stream_loop") + 1] == "-1"
        assert cmd[cmd.index("-f") + 1] == "apng"
        assert "-loop" not in cmd
