"""Contains `splatcam viewer-settings` CLI implementation."""

from __future__ import annotations

import json
import logging
import struct
from pathlib import Path

import click

from splatcam.utils import camera
from splatcam.utils import logging as logging_utils
from splatcam.utils.ply import CAMERA_ELEMENTS

LOGGER = logging.getLogger(__name__)


def _merge_viewer_settings(
    base: dict[str, object], overrides: dict[str, object]
) -> dict[str, object]:
    merged = dict(base)
    for key, value in overrides.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = {**existing, **value}
        else:
            merged[key] = value
    return merged


def _load_viewer_settings(path: Path) -> dict[str, object]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise click.ClickException(f"Failed to load viewer settings {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise click.ClickException(f"Viewer settings JSON must be an object: {path}")
    return data


def build_viewer_settings(ply_path: Path) -> dict[str, object] | None:
    """Return camera viewer settings for a PLY, or None without camera metadata."""
    header, raw = camera.read_ply_metadata(
        ply_path.read_bytes(), wanted=CAMERA_ELEMENTS | {"disparity"}
    )
    if raw is None:
        return None
    ply_camera = camera.camera_from_elements(raw, header.comments)
    if ply_camera is None:
        return None
    depth_focus = camera.depth_focus_from_disparity(raw.get("disparity"))
    LOGGER.debug("Using depth focus %.3f for %s", depth_focus, ply_path)
    return camera.compute_viewer_camera_settings(ply_camera, depth_focus)


@click.command()
@click.option(
    "-i",
    "--input-path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Path to a Gaussians PLY with camera metadata.",
    required=True,
)
@click.option(
    "-o",
    "--output-path",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Path to write the viewer settings JSON.",
    required=True,
)
@click.option(
    "--base",
    "base_settings",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    default=None,
    help="Optional viewer settings JSON to merge the camera settings into.",
)
@click.option(
    "--overwrite/--no-overwrite",
    default=False,
    show_default=True,
    help="Overwrite an existing output file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Activate debug logs.")
def viewer_settings_cli(
    input_path: Path,
    output_path: Path,
    base_settings: Path | None,
    overwrite: bool,
    verbose: bool,
) -> None:
    """Write viewer camera settings matching the capture camera of a PLY."""
    logging_utils.configure(logging.DEBUG if verbose else logging.INFO)

    if output_path.exists() and not overwrite:
        raise click.ClickException(f"Output already exists: {output_path}")

    try:
        settings = build_viewer_settings(input_path)
    except (RuntimeError, ValueError, struct.error) as exc:
        raise click.ClickException(f"Failed to read {input_path}: {exc}") from exc
    if settings is None:
        raise click.ClickException(f"No camera metadata found in {input_path}")

    if base_settings is not None:
        settings = _merge_viewer_settings(_load_viewer_settings(base_settings), settings)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(settings, indent=2), encoding="utf-8")
    LOGGER.info("Wrote viewer settings to %s", output_path)
