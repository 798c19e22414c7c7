"""
End-to-end pipeline tests with the recording tag writer and compositor.

Tests cover:
- Overlay modes and the files they produce
- Unmatched media and metadata
- Re-running on the same output directory
- Worker count invariance
- Fatal setup errors
"""

import json
import threading
from unittest.mock import patch

import pytest

from common.errors import ConfigError, MalformedExport, MissingDependencyError, OutputDirectoryError
from common.processor_config import OverlayMode, PipelineConfig
from processors.snapchat_memories.processor import run_pipeline
from tests.fixtures.doubles import COMPOSITE_MARKER, FakeCompositor, RecordingApplier
from tests.fixtures.generators import (
    create_snapchat_memories_export,
    file_contents,
    output_listing,
    tree_contents,
)

REPORT = "issues/failure-report.json"


def run(config, applier=None, compositor=None, **kwargs):
    return run_pipeline(
        config,
        applier=applier or RecordingApplier(),
        compositor=compositor or FakeCompositor(),
        show_progress=False,
        print_summary=False,
        **kwargs,
    )


class TestSingleMemory:
    """The abc.png + abc_overlay.png export."""

    def test_copy_mode(self, snapchat_memories_export, make_config, temp_output_dir):
        summary = run(make_config(overlay_mode="copy"))

        assert (summary.done, summary.failed, summary.cancelled) == (1, 0, 0)
        assert output_listing(temp_output_dir) == ["abc.png", "abc_composited.png"]
        contents = file_contents(temp_output_dir)
        assert contents["abc_composited.png"] == contents["abc.png"] + COMPOSITE_MARKER
        assert summary.report_path is None
        assert not (temp_output_dir / ".snapback-staging").exists()

    def test_overwrite_mode(self, snapchat_memories_export, make_config, temp_output_dir):
        summary = run(make_config(overlay_mode="overwrite"))

        assert summary.done == 1
        assert output_listing(temp_output_dir) == ["abc.png"]
        assert file_contents(temp_output_dir)["abc.png"].endswith(COMPOSITE_MARKER)

    def test_ignore_mode_keeps_bytes(self, snapchat_memories_export, make_config, temp_output_dir):
        original = (snapchat_memories_export / "memories" / "abc.png").read_bytes()
        compositor = FakeCompositor()

        summary = run(make_config(overlay_mode="ignore"), compositor=compositor)

        assert summary.done == 1
        assert compositor.calls == []
        assert file_contents(temp_output_dir) == {"abc.png": original}

    def test_tags_from_record(self, snapchat_memories_export, make_config):
        applier = RecordingApplier()
        run(make_config(), applier=applier)

        call = applier.calls[0]
        assert call.timestamp.isoformat() == "2021-01-01T12:00:00+00:00"
        assert call.gps.latitude == pytest.approx(40.0, abs=1e-6)
        assert call.gps.longitude == pytest.approx(-105.0, abs=1e-6)

    def test_output_mtime(self, snapchat_memories_export, make_config, temp_output_dir):
        summary = run(make_config(overlay_mode="copy"))
        for path in summary.outputs:
            assert path.stat().st_mtime == pytest.approx(1609502400, abs=1)

    def test_missing_original(self, temp_export_dir, make_config, temp_output_dir):
        """Should report the record once, with the stray overlay attached."""
        create_snapchat_memories_export(
            temp_export_dir, [{"id": "2021-01-01_abc", "file": None, "overlay": "abc_overlay.png"}]
        )

        summary = run(make_config())

        assert (summary.done, summary.failed) == (0, 1)
        assert summary.causes() == ["UnmatchedMetadata"]
        assert output_listing(temp_output_dir) == []

        report = json.loads(summary.report_path.read_text(encoding="utf-8"))
        assert report["summary"]["failed_matching"] == 1
        saved = temp_output_dir / "issues" / "failed-matching" / "metadata" / "2021-01-01_abc.json"
        assert saved.exists()


class TestManyMemories:
    MEMORIES = [
        {"id": "2021-01-01_aaa", "file": "aaa.png", "overlay": "aaa_overlay.png"},
        {"id": "2021-01-02_bbb", "file": "bbb.jpg"},
        {"id": "2021-01-03_ccc", "file": "ccc.png", "overlay": "ccc-overlay.png", "dir": "memories 2"},
        {"id": "2021-01-04_ddd", "file": "ddd.png", "record": False},
        {"id": "2021-01-05_eee", "file": None},
        {"id": "2021-01-06_fff", "file": "fff.png", "date": "not a date"},
    ]

    @pytest.fixture
    def export(self, temp_export_dir):
        return create_snapchat_memories_export(temp_export_dir, self.MEMORIES)

    @pytest.mark.parametrize(
        "mode, expected",
        [
            ("ignore", ["aaa.png", "bbb.jpg", "ccc.png"]),
            ("overwrite", ["aaa.png", "bbb.jpg", "ccc.png"]),
            (
                "copy",
                ["aaa.png", "aaa_composited.png", "bbb.jpg", "ccc.png", "ccc_composited.png"],
            ),
        ],
    )
    def test_outputs_per_mode(self, export, make_config, temp_output_dir, mode, expected):
        summary = run(make_config(overlay_mode=mode))

        assert output_listing(temp_output_dir) == expected
        assert summary.done == 3

    def test_failures_reported(self, export, make_config):
        summary = run(make_config())

        # fff's record is rejected, so its file is left without metadata too
        assert summary.failed == 4
        assert [(i, c) for i, c, _ in summary.failures] == [
            ("2021-01-05_eee", "UnmatchedMetadata"),
            ("2021-01-06_fff", "MalformedRecord"),
            ("ddd", "UnmatchedMedia"),
            ("fff", "UnmatchedMedia"),
        ]
        media_dir = summary.report_path.parent / "failed-matching" / "media"
        assert sorted(p.name for p in media_dir.iterdir()) == ["ddd.png", "fff.png"]

    def test_item_failure_does_not_stop_run(self, export, make_config):
        summary = run(make_config(), applier=RecordingApplier(fail_for={"bbb.jpg"}))

        assert summary.done == 2
        assert ("bbb", "TagError") in [(i, c) for i, c, _ in summary.failures]
        report = json.loads(summary.report_path.read_text(encoding="utf-8"))
        assert report["summary"]["failed_processing"] == 1

    def test_worker_count_invariance(self, tmp_path):
        """Should produce identical output trees for 1 and 4 workers."""
        trees = []
        for workers in (1, 4):
            export_dir = create_snapchat_memories_export(tmp_path / f"export{workers}", self.MEMORIES)
            output_dir = tmp_path / f"output{workers}"
            config = PipelineConfig(
                metadata_file=export_dir / "json" / "memories_history.json",
                input_dir=export_dir,
                output_dir=output_dir,
                workers=workers,
                overlay_mode=OverlayMode.COPY,
            )
            summary = run(config)
            trees.append((file_contents(output_dir), summary.causes()))

        assert trees[0] == trees[1]

    def test_rerun_is_idempotent(self, export, make_config, temp_output_dir):
        """Should reuse identical outputs instead of adding suffixed copies."""
        config = make_config(overlay_mode="copy", keep_input=True)

        first = run(config)
        before = tree_contents(temp_output_dir, exclude=(REPORT,))
        second = run(config)

        # issues/ included: orphaned files are reused, not copied again
        assert tree_contents(temp_output_dir, exclude=(REPORT,)) == before
        assert "issues/failed-matching/media/ddd.png" in before
        assert "issues/failed-matching/metadata/2021-01-05_eee.json" in before
        assert (first.done, second.done) == (3, 3)
        assert first.outputs == second.outputs

    def test_name_wanted_twice_in_one_run(self, temp_export_dir, make_config, temp_output_dir):
        """Should settle a shared output name by item order, not by which worker finishes first."""
        memories = [
            {"id": "2021-01-01_abc", "file": "abc.png", "overlay": "abc_overlay.png"},
            {"id": "2021-01-02_abc_composited", "file": "abc_composited.png", "file_kwargs": {"size": (4, 4)}},
        ]
        create_snapchat_memories_export(temp_export_dir, memories)
        trees = []
        for workers in (1, 2):
            output_dir = temp_output_dir / str(workers)
            summary = run(
                make_config(overlay_mode="copy", keep_input=True, workers=workers, output_dir=output_dir),
                applier=RecordingApplier(delay_for={"abc.png": 0.3}),
            )
            assert summary.done == 2
            trees.append(file_contents(output_dir))

        assert trees[0] == trees[1]
        names = sorted(trees[0])
        assert names[:2] == ["abc.png", "abc_composited.png"]
        assert names[2].startswith("abc_composited_")
        assert trees[0]["abc_composited.png"].endswith(COMPOSITE_MARKER)

    def test_different_content_same_name(self, temp_export_dir, make_config, temp_output_dir):
        memories = [
            {"id": "2021-01-01_abc", "file": "abc.png"},
            {"id": "2021-01-01_other", "file": "other.png"},
        ]
        create_snapchat_memories_export(temp_export_dir, memories)
        temp_output_dir.mkdir()
        (temp_output_dir / "abc.png").write_bytes(b"someone else's file")

        summary = run(make_config())

        assert summary.done == 2
        assert (temp_output_dir / "abc.png").read_bytes() == b"someone else's file"
        assert len(output_listing(temp_output_dir)) == 3

    def test_keep_input(self, export, make_config):
        before = {p: p.read_bytes() for p in export.rglob("*") if p.is_file()}
        run(make_config(keep_input=True))
        assert {p: p.read_bytes() for p in export.rglob("*") if p.is_file()} == before

    def test_cancelled_run(self, export, make_config, temp_output_dir):
        cancel = threading.Event()
        cancel.set()

        summary = run(make_config(), cancel_event=cancel)

        assert summary.done == 0
        assert summary.cancelled == 3
        assert summary.failed == 4
        assert output_listing(temp_output_dir) == []


class TestFatalErrors:
    def test_missing_metadata(self, temp_export_dir, make_config, temp_output_dir):
        with pytest.raises(MalformedExport):
            run(make_config())
        assert not temp_output_dir.exists()

    def test_missing_input_dir(self, snapchat_memories_export, make_config, tmp_path):
        with pytest.raises(ConfigError):
            run(make_config(input_dir=tmp_path / "nope"))

    def test_output_is_a_file(self, snapchat_memories_export, make_config, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        with pytest.raises(OutputDirectoryError):
            run(make_config(output_dir=blocker / "output"))

    def test_missing_exiftool(self, snapchat_memories_export, make_config):
        with patch("common.dependency_checker._tool_runs", return_value=False):
            with pytest.raises(MissingDependencyError, match="exiftool"):
                run_pipeline(make_config(), show_progress=False, print_summary=False)

    def test_missing_ffmpeg_only_matters_for_overlays(self, snapchat_memories_export, make_config):
        def tool_runs(tool):
            return tool == "exiftool"

        with patch("common.dependency_checker._tool_runs", side_effect=tool_runs):
            with pytest.raises(MissingDependencyError, match="ffmpeg"):
                run_pipeline(
                    make_config(), applier=None, show_progress=False, print_summary=False
                )
            summary = run_pipeline(
                make_config(overlay_mode="ignore"),
                applier=RecordingApplier(),
                show_progress=False,
                print_summary=False,
            )
        assert summary.done == 1

    def test_nothing_dispatched_on_fatal_error(self, snapchat_memories_export, make_config):
        (snapchat_memories_export / "json" / "memories_history.json").write_text("{broken")
        applier = RecordingApplier()

        with pytest.raises(MalformedExport):
            run(make_config(), applier=applier)

        assert applier.calls == []
        assert (snapchat_memories_export / "memories" / "abc.png").exists()
