"""Color space tags stored in the `color_space` PLY element."""

from __future__ import annotations

import math
from typing import Literal

ColorSpace = Literal["sRGB", "linearRGB"]

_COLOR_SPACES: tuple[ColorSpace, ...] = ("sRGB", "linearRGB")


def encode_color_space(color_space: ColorSpace) -> int:
    """Return the index written to the `color_space` element."""
    try:
        return _COLOR_SPACES.index(color_space)
    except ValueError as exc:
        raise ValueError(f"Unknown color space: {color_space}") from exc


def decode_color_space(index: int | float | None) -> ColorSpace | None:
    if index is None or not math.isfinite(index) or index != int(index):
        return None
    if not 0 <= int(index) < len(_COLOR_SPACES):
        return None
    return _COLOR_SPACES[int(index)]
