"""Contains `splatcam inspect` CLI implementation.

For licensing see accompanying LICENSE file.
Copyright (C) 2025 Apple Inc. All Rights Reserved.
"""

from __future__ import annotations

import json
import logging
import struct
from pathlib import Path

import click

from splatcam.utils import camera
from splatcam.utils import logging as logging_utils

LOGGER = logging.getLogger(__name__)


def _collect_ply_paths(input_path: Path) -> list[Path]:
    if input_path.is_file():
        return [input_path] if input_path.suffix.lower() == ".ply" else []
    return sorted(p for p in input_path.glob("**/*") if p.is_file() and p.suffix.lower() == ".ply")


def _format_summary(path: Path, ply_camera: camera.PlyCamera) -> str:
    intr = ply_camera.intrinsics
    fov = camera.vertical_fov_degrees(intr)
    lines = [
        f"{path}:",
        f"  image size:      {intr.image_width} x {intr.image_height}",
        f"  focal (px):      fx={intr.fx:.4f} fy={intr.fy:.4f}",
        f"  principal point: cx={intr.cx:.4f} cy={intr.cy:.4f}",
        f"  vertical fov:    {fov:.3f} deg" if fov is not None else "  vertical fov:    n/a",
        f"  color space:     {ply_camera.color_space or ply_camera.color_space_index}",
    ]
    matrix = ply_camera.extrinsic_matrix()
    lines.append("  extrinsic:")
    for row in matrix:
        lines.append("    " + " ".join(f"{v: .6f}" for v in row))
    for comment in ply_camera.header_comments:
        lines.append(f"  comment: {comment}")
    return "\n".join(lines)


@click.command()
@click.option(
    "-i",
    "--input-path",
    type=click.Path(path_type=Path, exists=True),
    help="Path to a PLY file or a directory containing PLY files.",
    required=True,
)
@click.option(
    "--json/--no-json",
    "as_json",
    default=False,
    show_default=True,
    help="Print one JSON object mapping each file to its camera (or null).",
)
@click.option("-v", "--verbose", is_flag=True, help="Activate debug logs.")
def inspect_cli(input_path: Path, as_json: bool, verbose: bool) -> None:
    """Print the capture camera stored in PLY files."""
    logging_utils.configure(logging.DEBUG if verbose else logging.INFO)

    ply_paths = _collect_ply_paths(input_path)
    if len(ply_paths) == 0:
        LOGGER.info("No PLY files found. Input was %s.", input_path)
        return

    results: dict[str, object] = {}
    failed = 0
    for ply_path in ply_paths:
        try:
            ply_camera = camera.load_ply_camera(ply_path)
        except (RuntimeError, ValueError, struct.error) as exc:
            LOGGER.error("Failed to read %s: %s", ply_path, exc)
            failed += 1
            continue

        if as_json:
            results[str(ply_path)] = ply_camera.to_dict() if ply_camera is not None else None
        elif ply_camera is None:
            click.echo(f"{ply_path}: no camera metadata")
        else:
            click.echo(_format_summary(ply_path, ply_camera))

    if as_json:
        click.echo(json.dumps(results, indent=2))

    if failed:
        raise click.ClickException(f"Failed to read {failed} of {len(ply_paths)} PLY file(s).")
