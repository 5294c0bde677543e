"""Tests for the splatcam command-line interface."""

from __future__ import annotations

import json
import logging
import math

import pytest
from click.testing import CliRunner

from splatcam.cli import main_cli


@pytest.fixture(autouse=True)
def _restore_root_logger():
    # The CLIs reconfigure the root logger onto CliRunner's captured streams.
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def camera_ply(tmp_path, make_ply, scalar_el, vertex_el):
    path = tmp_path / "scene.ply"
    path.write_bytes(
        make_ply(
            [
                vertex_el(3),
                scalar_el("intrinsic", "float", [1200.0, 0.0, 960.0, 0.0, 1200.0, 540.0, 0.0, 0.0, 1.0]),
                scalar_el("image_size", "uint", [1920, 1080]),
                scalar_el("disparity", "float", [0.1, 0.25]),
                scalar_el("color_space", "uchar", [0]),
            ],
            comments=["captured on device"],
        )
    )
    return path


class TestInspect:
    def test_json_output(self, camera_ply):
        result = CliRunner().invoke(main_cli, ["inspect", "-i", str(camera_ply), "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        entry = payload[str(camera_ply)]
        assert entry["intrinsics"]["fx"] == 1200.0
        assert entry["color_space"] == "sRGB"
        assert entry["header_comments"] == ["captured on device"]

    def test_text_output_for_directory(self, tmp_path, camera_ply, make_ply, vertex_el):
        (tmp_path / "plain.ply").write_bytes(make_ply([vertex_el(2)]))
        result = CliRunner().invoke(main_cli, ["inspect", "-i", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "plain.ply: no camera metadata" in result.output
        assert "1920 x 1080" in result.output
        assert "comment: captured on device" in result.output

    def test_broken_file_fails(self, tmp_path):
        (tmp_path / "broken.ply").write_bytes(b"not a ply at all\n")
        result = CliRunner().invoke(main_cli, ["inspect", "-i", str(tmp_path)])
        assert result.exit_code != 0
        assert "Failed to read 1 of 1" in result.output


class TestViewerSettings:
    def test_writes_settings(self, tmp_path, camera_ply):
        output = tmp_path / "settings.json"
        result = CliRunner().invoke(
            main_cli, ["viewer-settings", "-i", str(camera_ply), "-o", str(output)]
        )
        assert result.exit_code == 0, result.output
        settings = json.loads(output.read_text())
        assert settings["camera"]["target"] == [0.0, 0.0, 4.0]
        assert settings["camera"]["fov"] == pytest.approx(2 * math.degrees(math.atan(540 / 1200)))

    def test_merges_base_settings(self, tmp_path, camera_ply):
        base = tmp_path / "base.json"
        base.write_text(json.dumps({"camera": {"fov": 10, "near": 0.1}, "background": [0, 0, 0]}))
        output = tmp_path / "settings.json"
        result = CliRunner().invoke(
            main_cli,
            ["viewer-settings", "-i", str(camera_ply), "-o", str(output), "--base", str(base)],
        )
        assert result.exit_code == 0, result.output
        settings = json.loads(output.read_text())
        assert settings["background"] == [0, 0, 0]
        assert settings["camera"]["near"] == 0.1
        assert settings["camera"]["fov"] != 10

    def test_malformed_base_settings(self, tmp_path, camera_ply):
        base = tmp_path / "base.json"
        base.write_text("{not json")
        output = tmp_path / "settings.json"
        result = CliRunner().invoke(
            main_cli,
            ["viewer-settings", "-i", str(camera_ply), "-o", str(output), "--base", str(base)],
        )
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Failed to load viewer settings" in result.output
        assert "base.json" in result.output
        assert not output.exists()

    def test_refuses_to_overwrite(self, tmp_path, camera_ply):
        output = tmp_path / "settings.json"
        output.write_text("{}")
        result = CliRunner().invoke(
            main_cli, ["viewer-settings", "-i", str(camera_ply), "-o", str(output)]
        )
        assert result.exit_code != 0
        assert output.read_text() == "{}"

    def test_missing_camera(self, tmp_path, make_ply, vertex_el):
        src = tmp_path / "plain.ply"
        src.write_bytes(make_ply([vertex_el(2)]))
        result = CliRunner().invoke(
            main_cli, ["viewer-settings", "-i", str(src), "-o", str(tmp_path / "out.json")]
        )
        assert result.exit_code != 0
        assert "No camera metadata" in result.output


class TestStamp:
    def test_stamp_then_inspect(self, tmp_path, make_ply, vertex_el):
        src = tmp_path / "plain.ply"
        dst = tmp_path / "stamped.ply"
        src.write_bytes(make_ply([vertex_el(4)]))
        runner = CliRunner()
        result = runner.invoke(
            main_cli,
            [
                "stamp", "-i", str(src), "-o", str(dst),
                "--focal-px", "800", "--width", "640", "--height", "480",
                "--color-space", "linearRGB",
            ],
        )  # fmt: skip
        assert result.exit_code == 0, result.output

        result = runner.invoke(main_cli, ["inspect", "-i", str(dst), "--json"])
        entry = json.loads(result.output)[str(dst)]
        assert entry["intrinsics"] == {
            "fx": 800.0,
            "fy": 800.0,
            "cx": 320.0,
            "cy": 240.0,
            "image_width": 640,
            "image_height": 480,
        }
        assert entry["color_space"] == "linearRGB"

    def test_broken_input_reports_file(self, tmp_path):
        src = tmp_path / "bad.ply"
        src.write_bytes(b"not a ply\n")
        dst = tmp_path / "out.ply"
        result = CliRunner().invoke(
            main_cli,
            ["stamp", "-i", str(src), "-o", str(dst), "--focal-px", "1", "--width", "1", "--height", "1"],
        )
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert f"Failed to read {src}" in result.output
        assert not dst.exists()

    def test_same_path_is_rejected(self, tmp_path, make_ply, vertex_el):
        src = tmp_path / "plain.ply"
        src.write_bytes(make_ply([vertex_el(1)]))
        result = CliRunner().invoke(
            main_cli,
            ["stamp", "-i", str(src), "-o", str(src), "--focal-px", "1", "--width", "1", "--height", "1"],
        )
        assert result.exit_code != 0
