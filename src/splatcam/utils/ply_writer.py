"""Write camera metadata elements into PLY files."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import numpy as np
from plyfile import PlyData, PlyElement  # type: ignore[import-not-found]

from splatcam.utils import color_space as cs_utils
from splatcam.utils.camera import CameraIntrinsics
from splatcam.utils.ply import CAMERA_ELEMENTS

LOGGER = logging.getLogger(__name__)


def _single_property_element(name: str, values: Sequence[float], dtype: str) -> PlyElement:
    array = np.empty(len(values), dtype=[(name, dtype)])
    array[:] = np.asarray(values).flatten()
    return PlyElement.describe(array, name)


def camera_metadata_elements(
    intrinsics: CameraIntrinsics,
    extrinsic: Sequence[float] | None = None,
    color_space: cs_utils.ColorSpace = "sRGB",
) -> list[PlyElement]:
    """Describe the camera metadata elements for `intrinsics`.

    Intrinsics are written as a row-major 3x3 matrix next to an explicit
    `image_size`, and the extrinsic as a row-major 4x4 (identity by default).
    """
    if extrinsic is None:
        extrinsic = np.eye(4).flatten()
    if len(extrinsic) != 16:
        raise ValueError(f"Expected 16 extrinsic values, got {len(extrinsic)}.")

    intrinsic = np.array(
        [
            [intrinsics.fx, 0, intrinsics.cx],
            [0, intrinsics.fy, intrinsics.cy],
            [0, 0, 1],
        ]
    )
    image_size = np.array([intrinsics.image_width, intrinsics.image_height])

    return [
        _single_property_element("extrinsic", extrinsic, "f4"),
        _single_property_element("intrinsic", intrinsic.flatten(), "f4"),
        _single_property_element("image_size", image_size, "u4"),
        _single_property_element("color_space", [cs_utils.encode_color_space(color_space)], "u1"),
    ]


def stamp_camera_metadata(
    src: Path,
    dst: Path,
    *,
    intrinsics: CameraIntrinsics,
    extrinsic: Sequence[float] | None = None,
    color_space: cs_utils.ColorSpace = "sRGB",
) -> None:
    """Copy `src` to `dst`, replacing any camera metadata elements with new ones."""
    ply = PlyData.read(str(src))
    kept = [element for element in ply.elements if element.name not in CAMERA_ELEMENTS]
    replaced = len(ply.elements) - len(kept)
    if replaced:
        LOGGER.info("Replacing %d existing camera metadata element(s).", replaced)

    # Camera metadata is only read back from binary PLY.
    byte_order = ply.byte_order
    if ply.text:
        LOGGER.info("Source PLY is ASCII; writing binary little-endian output.")
        byte_order = "<"

    stamped = PlyData(
        kept + camera_metadata_elements(intrinsics, extrinsic, color_space),
        text=False,
        byte_order=byte_order,
        comments=list(ply.comments),
        obj_info=list(ply.obj_info),
    )
    dst.parent.mkdir(parents=True, exist_ok=True)
    with open(dst, "wb") as f:
        stamped.write(f)
