"""Contains `splatcam stamp` CLI implementation."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from plyfile import PlyParseError  # type: ignore[import-not-found]

from splatcam.utils import logging as logging_utils
from splatcam.utils.camera import CameraIntrinsics
from splatcam.utils.ply_writer import stamp_camera_metadata

LOGGER = logging.getLogger(__name__)


@click.command()
@click.option(
    "-i",
    "--input-path",
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="Path to the source PLY.",
    required=True,
)
@click.option(
    "-o",
    "--output-path",
    type=click.Path(path_type=Path, dir_okay=False),
    help="Path to write the PLY with camera metadata.",
    required=True,
)
@click.option("--focal-px", type=float, required=True, help="Focal length in pixels (fx).")
@click.option("--fy", type=float, default=None, help="Vertical focal length. Defaults to --focal-px.")
@click.option("--width", type=click.IntRange(min=1), required=True, help="Image width in pixels.")
@click.option("--height", type=click.IntRange(min=1), required=True, help="Image height in pixels.")
@click.option("--cx", type=float, default=None, help="Principal point x. Defaults to width / 2.")
@click.option("--cy", type=float, default=None, help="Principal point y. Defaults to height / 2.")
@click.option(
    "--color-space",
    type=click.Choice(["sRGB", "linearRGB"]),
    default="sRGB",
    show_default=True,
    help="Color space of the Gaussian colors.",
)
@click.option("-v", "--verbose", is_flag=True, help="Activate debug logs.")
def stamp_cli(
    input_path: Path,
    output_path: Path,
    focal_px: float,
    fy: float | None,
    width: int,
    height: int,
    cx: float | None,
    cy: float | None,
    color_space: str,
    verbose: bool,
) -> None:
    """Write camera metadata elements into a copy of a PLY file."""
    logging_utils.configure(logging.DEBUG if verbose else logging.INFO)

    if input_path.resolve() == output_path.resolve():
        raise click.UsageError("Output path must differ from the input path.")

    intrinsics = CameraIntrinsics(
        fx=focal_px,
        fy=fy if fy is not None else focal_px,
        cx=cx if cx is not None else width * 0.5,
        cy=cy if cy is not None else height * 0.5,
        image_width=width,
        image_height=height,
    )
    try:
        stamp_camera_metadata(
            input_path,
            output_path,
            intrinsics=intrinsics,
            color_space=color_space,  # type: ignore[arg-type]
        )
    except (PlyParseError, OSError, ValueError) as exc:
        raise click.ClickException(f"Failed to read {input_path}: {exc}") from exc
    LOGGER.info("Wrote PLY with camera metadata to %s", output_path)
