"""Camera reconstruction from PLY camera metadata elements.

For licensing see accompanying LICENSE file.
Copyright (C) 2025 Apple Inc. All Rights Reserved.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import NamedTuple

import numpy as np

from splatcam.utils import color_space as cs_utils
from splatcam.utils import ply as ply_utils

LOGGER = logging.getLogger(__name__)

DEFAULT_DEPTH_FOCUS = 2.0

IDENTITY_4X4: tuple[float, ...] = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)  # fmt: skip


class CameraIntrinsics(NamedTuple):
    """Pinhole intrinsics in pixels plus the image size they refer to."""

    fx: float
    fy: float
    cx: float
    cy: float
    image_width: float
    image_height: float


class IntrinsicEncoding(NamedTuple):
    name: str
    fx_index: int
    fy_index: int
    cx_index: int | None  # None: principal point is the image centre.
    cy_index: int | None
    needs_image_size: bool


# Keyed by the length of the `intrinsic` element.
INTRINSIC_ENCODINGS: dict[int, IntrinsicEncoding] = {
    9: IntrinsicEncoding("matrix3x3", 0, 4, 2, 5, needs_image_size=True),
    16: IntrinsicEncoding("matrix4x4", 0, 5, 2, 6, needs_image_size=True),
    4: IntrinsicEncoding("legacy", 0, 1, None, None, needs_image_size=False),
}


class PlyCamera(NamedTuple):
    """Camera metadata recovered from a PLY file."""

    intrinsics: CameraIntrinsics
    extrinsic_cv: list[float]  # 4x4, row-major.
    color_space_index: int | None
    header_comments: tuple[str, ...]

    def extrinsic_matrix(self) -> np.ndarray:
        return np.asarray(self.extrinsic_cv, dtype=np.float64).reshape(4, 4)

    @property
    def color_space(self) -> cs_utils.ColorSpace | None:
        return cs_utils.decode_color_space(self.color_space_index)

    def to_dict(self) -> dict[str, object]:
        return {
            "intrinsics": self.intrinsics._asdict(),
            "extrinsic_cv": list(self.extrinsic_cv),
            "color_space_index": self.color_space_index,
            "color_space": self.color_space,
            "header_comments": list(self.header_comments),
        }


def _is_finite(value: object) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def decode_intrinsics(
    raw: Sequence[float] | None,
    image_width: float | None,
    image_height: float | None,
) -> CameraIntrinsics | None:
    """Decode an `intrinsic` element into pinhole intrinsics.

    Args:
        raw: Values of the `intrinsic` element, or None if it is absent.
        image_width: First value of the `image_size` element, if any.
        image_height: Second value of the `image_size` element, if any.

    Returns:
        The intrinsics, or None if the element is missing, has an unknown
        length, or the image size cannot be resolved.
    """
    if raw is None:
        return None

    encoding = INTRINSIC_ENCODINGS.get(len(raw))
    if encoding is None:
        LOGGER.debug("Unrecognized intrinsic element length %d.", len(raw))
        return None

    size_known = _is_finite(image_width) and _is_finite(image_height)
    if encoding.needs_image_size:
        if not size_known:
            LOGGER.debug("Intrinsic encoding '%s' needs a finite image_size.", encoding.name)
            return None
        width, height = image_width, image_height
    else:
        # Legacy intrinsics carry their own image size in slots 2 and 3.
        width = image_width if _is_finite(image_width) else raw[2]
        height = image_height if _is_finite(image_height) else raw[3]
        if not (_is_finite(width) and _is_finite(height)):
            return None
        if not _is_finite(image_width):
            width = int(width)
        if not _is_finite(image_height):
            height = int(height)

    if encoding.cx_index is None or encoding.cy_index is None:
        cx = (width - 1) * 0.5
        cy = (height - 1) * 0.5
    else:
        cx = raw[encoding.cx_index]
        cy = raw[encoding.cy_index]

    return CameraIntrinsics(
        fx=raw[encoding.fx_index],
        fy=raw[encoding.fy_index],
        cx=cx,
        cy=cy,
        image_width=width,
        image_height=height,
    )


def normalize_extrinsic(raw: Sequence[float] | None) -> list[float]:
    """Return the extrinsic as 16 row-major values of a 4x4 matrix.

    The 12-value form stores [R|t] with R transposed relative to the 4x4 form,
    so the rotation block is transposed back.
    """
    if raw is None:
        return list(IDENTITY_4X4)

    if len(raw) == 16:
        return list(raw)

    if len(raw) == 12:
        matrix = np.eye(4)
        matrix[:3] = np.asarray(raw, dtype=np.float64).reshape(3, 4)
        matrix[:3, :3] = matrix[:3, :3].T.copy()
        return matrix.flatten().tolist()

    raise ValueError(f"Unrecognized extrinsic element length: {len(raw)}")


def camera_from_elements(
    raw: Mapping[str, Sequence[float]], header_comments: Iterable[str] = ()
) -> PlyCamera | None:
    """Build a camera from scanned element values, or None without usable intrinsics."""
    image_size = raw.get("image_size") or ()
    image_width = image_size[0] if len(image_size) > 0 else None
    image_height = image_size[1] if len(image_size) > 1 else None

    intrinsics = decode_intrinsics(raw.get("intrinsic"), image_width, image_height)
    if intrinsics is None:
        return None

    color_space = raw.get("color_space") or ()
    return PlyCamera(
        intrinsics=intrinsics,
        extrinsic_cv=normalize_extrinsic(raw.get("extrinsic")),
        color_space_index=color_space[0] if len(color_space) > 0 else None,
        header_comments=tuple(header_comments),
    )


def read_ply_metadata(
    file_bytes: ply_utils.Buffer, wanted: Iterable[str] = ply_utils.CAMERA_ELEMENTS
) -> tuple[ply_utils.PlyHeader, dict[str, list[ply_utils.Scalar]] | None]:
    """Parse the header and collect the wanted element values.

    The values are None for ASCII files, which have no binary payload to scan.
    """
    header = ply_utils.parse_ply_header(file_bytes)
    if not header.is_binary:
        LOGGER.debug("PLY is ASCII; camera metadata is only read from binary PLY.")
        return header, None

    data = memoryview(file_bytes)[header.data_start :]
    raw = ply_utils.scan_elements(header.elements, data, header.little_endian, wanted)
    return header, raw


def read_ply_camera(file_bytes: ply_utils.Buffer) -> PlyCamera | None:
    """Recover the capture camera from the bytes of a PLY file."""
    header, raw = read_ply_metadata(file_bytes)
    if raw is None:
        return None
    return camera_from_elements(raw, header.comments)


def load_ply_camera(path: Path) -> PlyCamera | None:
    return read_ply_camera(Path(path).read_bytes())


def vertical_fov_degrees(intrinsics: CameraIntrinsics) -> float | None:
    if intrinsics.fy <= 0 or intrinsics.image_height <= 0:
        return None
    return 2.0 * math.degrees(math.atan((intrinsics.image_height * 0.5) / intrinsics.fy))


def horizontal_fov_degrees(intrinsics: CameraIntrinsics) -> float | None:
    if intrinsics.fx <= 0 or intrinsics.image_width <= 0:
        return None
    return 2.0 * math.degrees(math.atan((intrinsics.image_width * 0.5) / intrinsics.fx))


def depth_focus_from_disparity(disparity: Sequence[float] | None) -> float:
    """Pick a look-at distance from the exported (q10, q90) disparity range."""
    depth_focus = DEFAULT_DEPTH_FOCUS
    if disparity and len(disparity) >= 2:
        q90 = float(disparity[1])
        if q90 > 1e-6:
            depth_focus = max(depth_focus, 1.0 / q90)
    return depth_focus


def compute_viewer_camera_settings(
    camera: PlyCamera, depth_focus: float = DEFAULT_DEPTH_FOCUS
) -> dict[str, object]:
    """Return viewer settings that place the camera at the capture pose origin."""
    camera_settings: dict[str, object] = {
        "position": [0.0, 0.0, 0.0],
        "target": [0.0, 0.0, float(depth_focus)],
    }
    fov = vertical_fov_degrees(camera.intrinsics)
    if fov is not None:
        camera_settings["fov"] = float(fov)
    return {"camera": camera_settings}
