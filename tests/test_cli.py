"""Tests for CLI argument handling."""

import argparse
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from trimforge.cli import build_parser, main, manifest_from_args, parse_crop_arg, parse_segment
from trimforge.errors import TranscodeFailure
from trimforge.executor import EditResult
from trimforge.models import CropRect


class TestParseArgs:
    def test_segment(self):
        seg = parse_segment("1.5:4")
        assert (seg.start, seg.end) == (1.5, 4.0)

    def test_bad_segment(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_segment("1.5")

    def test_crop(self):
        assert parse_crop_arg("640:360:0:60") == CropRect(x=0, y=60, width=640, height=360)

    def test_bad_crop(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_crop_arg("640x360")


class TestManifestFromArgs:
    def test_full(self):
        args = build_parser().parse_args([
            "edit", "clip.mp4",
            "-s", "10:12", "-s", "0:5",
            "--crop", "100:50:1:2",
            "--text", "Hello", "--position", "bottom",
        ])
        m = manifest_from_args(args)

        assert m.output == Path("clip_edited.mp4")
        assert [(s.start, s.end) for s in m.segments] == [(10, 12), (0, 5)]
        assert m.crop == CropRect(x=1, y=2, width=100, height=50)
        assert m.overlay.text == "Hello"
        assert m.overlay.position == "bottom"
        assert m.filter is None

    def test_no_overlay_without_text(self):
        args = build_parser().parse_args(["edit", "clip.mp4", "-s", "0:1", "-o", "out.mp4"])
        m = manifest_from_args(args)
        assert m.overlay is None
        assert m.output == Path("out.mp4")


class TestMain:
    @patch("trimforge.cli.process", new_callable=AsyncMock)
    def test_edit(self, mock_process, capsys):
        mock_process.return_value = EditResult(
            output_path=Path("clip_edited.mp4"), segments_kept=1, duration_kept=5.0
        )
        main(["edit", "clip.mp4", "-s", "0:5"])

        out = capsys.readouterr().out
        assert "Done! Output: clip_edited.mp4" in out
        assert "stream copy" in out

    @patch("trimforge.cli.process", new_callable=AsyncMock)
    def test_failure_exits_nonzero(self, mock_process, capsys):
        mock_process.side_effect = TranscodeFailure("bad input")
        with pytest.raises(SystemExit) as exc_info:
            main(["edit", "clip.mp4", "-s", "0:5"])
        assert exc_info.value.code == 1
        assert "bad input" in capsys.readouterr().err

    def test_requires_input(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["edit"])
        assert exc_info.value.code == 1
