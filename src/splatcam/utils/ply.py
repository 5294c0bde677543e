"""Binary PLY element walking for camera metadata.

Parses the PLY header into element descriptors and walks the binary payload
element by element, reading the small single-property elements that carry
camera metadata and skipping everything else by stride.

For licensing see accompanying LICENSE file.
Copyright (C) 2025 Apple Inc. All Rights Reserved.
"""

from __future__ import annotations

import functools
import io
import logging
import re
import struct
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import NamedTuple, Union

LOGGER = logging.getLogger(__name__)

Buffer = Union[bytes, bytearray, memoryview]
Scalar = Union[int, float]

CAMERA_ELEMENTS: frozenset[str] = frozenset({"intrinsic", "extrinsic", "image_size", "color_space"})

PLY_FORMATS = ("ascii", "binary_little_endian", "binary_big_endian")

# Initial header read size; doubled until the `end_header` line is in view.
HEADER_READ_SIZE = 4096

_END_HEADER_RE = re.compile(rb"(?:^|\n)[ \t]*end_header[ \t]*\r?\n")

_PLY_SCALAR_TYPE_SIZES: dict[str, int] = {
    "char": 1,
    "uchar": 1,
    "short": 2,
    "ushort": 2,
    "int": 4,
    "uint": 4,
    "float": 4,
    "double": 8,
}

_PLY_SCALAR_TYPE_STRUCT: dict[str, str] = {
    "char": "b",
    "uchar": "B",
    "short": "h",
    "ushort": "H",
    "int": "i",
    "uint": "I",
    "float": "f",
    "double": "d",
}

_PLY_TYPE_ALIASES: dict[str, str] = {
    "int8": "char",
    "uint8": "uchar",
    "int16": "short",
    "uint16": "ushort",
    "int32": "int",
    "uint32": "uint",
    "float32": "float",
    "float64": "double",
}

_PLY_FLOAT_TYPES = frozenset({"float", "double"})


class PlyHeaderError(RuntimeError):
    """Raised when a PLY header cannot be parsed."""


@dataclass(frozen=True)
class PlyProperty:
    name: str
    type: str
    count_type: str | None = None  # Length-prefix type; set only for list properties.

    @property
    def is_list(self) -> bool:
        return self.count_type is not None


@dataclass(frozen=True)
class PlyElementDescriptor:
    name: str
    count: int
    properties: tuple[PlyProperty, ...]

    @property
    def has_lists(self) -> bool:
        return any(prop.is_list for prop in self.properties)

    def fixed_record_size(self) -> int | None:
        """Return the per-item byte size, or None if the element has list properties."""
        if self.has_lists:
            return None
        return sum(_scalar_size(prop.type) for prop in self.properties)


@dataclass(frozen=True)
class PlyHeader:
    format: str
    version: str
    elements: tuple[PlyElementDescriptor, ...]
    comments: tuple[str, ...]
    obj_info: tuple[str, ...]
    data_start: int

    @property
    def is_binary(self) -> bool:
        return self.format != "ascii"

    @property
    def little_endian(self) -> bool:
        return self.format == "binary_little_endian"

    def element(self, name: str) -> PlyElementDescriptor | None:
        for element in self.elements:
            if element.name == name:
                return element
        return None


class StrideInfo(NamedTuple):
    stride: int
    constant: bool


class ItemLayout(NamedTuple):
    stride: int
    list_lengths: dict[str, int]


class SinglePropertyRead(NamedTuple):
    property_name: str
    values: list[Scalar]
    next_offset: int


class ScanState(NamedTuple):
    offset: int
    raw: dict[str, list[Scalar]]


def _normalize_type(name: str) -> str:
    name = name.lower()
    return _PLY_TYPE_ALIASES.get(name, name)


def _scalar_size(prop_type: str) -> int:
    size = _PLY_SCALAR_TYPE_SIZES.get(prop_type)
    if size is None:
        raise RuntimeError(f"Unsupported PLY field type: {prop_type}")
    return size


@functools.lru_cache(maxsize=None)
def _scalar_struct(prop_type: str, little_endian: bool) -> struct.Struct:
    struct_char = _PLY_SCALAR_TYPE_STRUCT.get(prop_type)
    if struct_char is None:
        raise RuntimeError(f"Unsupported PLY field type: {prop_type}")
    return struct.Struct(("<" if little_endian else ">") + struct_char)


def _parse_property_line(parts: list[str], line: str) -> PlyProperty:
    if parts[1] == "list":
        if len(parts) != 5:
            raise PlyHeaderError(f"Invalid property line: {line}")
        return PlyProperty(
            name=parts[4], type=_normalize_type(parts[3]), count_type=_normalize_type(parts[2])
        )
    if len(parts) != 3:
        raise PlyHeaderError(f"Invalid property line: {line}")
    return PlyProperty(name=parts[2], type=_normalize_type(parts[1]))


def _header_prefix(file_bytes: Buffer) -> bytes:
    """Return a leading slice of `file_bytes` that holds the whole header."""
    view = memoryview(file_bytes)
    limit = HEADER_READ_SIZE
    while True:
        prefix = bytes(view[:limit])
        if limit >= len(view) or _END_HEADER_RE.search(prefix):
            return prefix
        limit *= 2


def parse_ply_header(file_bytes: Buffer) -> PlyHeader:
    """Parse the PLY header at the start of `file_bytes`.

    Returns:
        The parsed header. `data_start` is the byte offset right after the
        `end_header` line, where element data begins.
    """
    f = io.BytesIO(_header_prefix(file_bytes))
    first = f.readline()
    if not first:
        raise PlyHeaderError("Empty file.")
    if first.strip() != b"ply":
        raise PlyHeaderError("Not a PLY file (missing 'ply' header).")

    format_line_b = f.readline()
    if not format_line_b:
        raise PlyHeaderError("Truncated PLY header (missing format line).")
    format_parts = format_line_b.decode("utf-8", errors="replace").split()
    if len(format_parts) != 3 or format_parts[0] != "format":
        raise PlyHeaderError("Invalid PLY header (missing format line).")
    ply_format, version = format_parts[1], format_parts[2]
    if ply_format not in PLY_FORMATS:
        raise PlyHeaderError(f"Unsupported PLY format: {ply_format}")

    elements: list[PlyElementDescriptor] = []
    comments: list[str] = []
    obj_info: list[str] = []
    current_name: str | None = None
    current_count = 0
    current_props: list[PlyProperty] = []

    def flush() -> None:
        if current_name is not None:
            elements.append(
                PlyElementDescriptor(current_name, current_count, tuple(current_props))
            )

    while True:
        line_b = f.readline()
        if not line_b:
            raise PlyHeaderError("Truncated PLY header (missing end_header).")
        line = line_b.decode("utf-8", errors="replace").strip()
        if not line:
            continue
        if line == "end_header":
            flush()
            break

        keyword, _, rest = line.partition(" ")
        if keyword == "comment":
            comments.append(rest.strip())
            continue
        if keyword == "obj_info":
            obj_info.append(rest.strip())
            continue

        parts = line.split()
        if keyword == "element":
            if len(parts) != 3:
                raise PlyHeaderError(f"Invalid element line: {line}")
            flush()
            current_name = parts[1]
            try:
                current_count = int(parts[2])
            except ValueError as exc:
                raise PlyHeaderError(f"Invalid element count: {line}") from exc
            current_props = []
        elif keyword == "property":
            if current_name is None:
                continue
            if len(parts) < 3:
                raise PlyHeaderError(f"Invalid property line: {line}")
            current_props.append(_parse_property_line(parts, line))
        else:
            LOGGER.debug("Ignoring PLY header line: %s", line)

    return PlyHeader(
        format=ply_format,
        version=version,
        elements=tuple(elements),
        comments=tuple(comments),
        obj_info=tuple(obj_info),
        data_start=f.tell(),
    )


def read_scalar(data: Buffer, offset: int, prop_type: str, little_endian: bool) -> Scalar:
    """Decode one scalar of `prop_type` at `offset`."""
    return _scalar_struct(prop_type, little_endian).unpack_from(data, offset)[0]


def _list_widths(prop: PlyProperty) -> tuple[int, int]:
    count_bytes = _PLY_SCALAR_TYPE_SIZES.get(prop.count_type or "")
    value_bytes = _PLY_SCALAR_TYPE_SIZES.get(prop.type)
    if count_bytes is None or value_bytes is None or prop.count_type in _PLY_FLOAT_TYPES:
        raise RuntimeError(f"Unsupported PLY list field types: {prop.count_type}, {prop.type}")
    return count_bytes, value_bytes


def measure_item(
    properties: Sequence[PlyProperty], data: Buffer, item_offset: int, little_endian: bool
) -> ItemLayout:
    """Measure one item of an element, reading list length prefixes as needed."""
    offset = item_offset
    list_lengths: dict[str, int] = {}

    for prop in properties:
        if not prop.is_list:
            offset += _scalar_size(prop.type)
            continue

        count_bytes, value_bytes = _list_widths(prop)
        length = read_scalar(data, offset, prop.count_type, little_endian)
        offset += count_bytes
        list_lengths[prop.name] = length
        offset += length * value_bytes

    return ItemLayout(stride=offset - item_offset, list_lengths=list_lengths)


def compute_element_stride(
    element: PlyElementDescriptor, data: Buffer, element_offset: int, little_endian: bool
) -> StrideInfo:
    """Return the per-item stride of `element` and whether it holds for every item.

    List-bearing elements are sampled on their first two items only; when those
    agree the layout is taken as constant for the whole element.
    """
    fixed = element.fixed_record_size()
    if fixed is not None:
        return StrideInfo(fixed, True)

    if element.count <= 0:
        return StrideInfo(0, True)

    first = measure_item(element.properties, data, element_offset, little_endian)
    if element.count == 1:
        return StrideInfo(first.stride, True)

    second = measure_item(
        element.properties, data, element_offset + first.stride, little_endian
    )
    if second.stride != first.stride:
        return StrideInfo(first.stride, False)

    for name, length in first.list_lengths.items():
        if second.list_lengths.get(name) != length:
            return StrideInfo(first.stride, False)

    return StrideInfo(first.stride, True)


def skip_element(
    element: PlyElementDescriptor, data: Buffer, element_offset: int, little_endian: bool
) -> int:
    """Return the offset just past `element` without decoding its values."""
    if element.count <= 0:
        return element_offset

    fixed = element.fixed_record_size()
    if fixed is not None:
        return element_offset + element.count * fixed

    stride_info = compute_element_stride(element, data, element_offset, little_endian)
    if stride_info.constant:
        return element_offset + element.count * stride_info.stride

    LOGGER.debug("Walking %d items of variable-stride element '%s'.", element.count, element.name)
    offset = element_offset
    for _ in range(element.count):
        offset += measure_item(element.properties, data, offset, little_endian).stride
    return offset


def read_single_property_element(
    element: PlyElementDescriptor, data: Buffer, element_offset: int, little_endian: bool
) -> SinglePropertyRead | None:
    """Read an element made of one scalar property as a flat value list.

    Returns None if the element has more than one property or a list property.
    """
    if len(element.properties) != 1:
        return None
    prop = element.properties[0]
    if prop.is_list:
        return None

    stride = _scalar_size(prop.type)
    if element.count <= 0:
        return SinglePropertyRead(prop.name, [], element_offset)

    endian = "<" if little_endian else ">"
    fmt = f"{endian}{element.count}{_PLY_SCALAR_TYPE_STRUCT[prop.type]}"
    values = list(struct.unpack_from(fmt, data, element_offset))
    return SinglePropertyRead(prop.name, values, element_offset + element.count * stride)


def _scan_step(
    state: ScanState,
    element: PlyElementDescriptor,
    *,
    data: Buffer,
    little_endian: bool,
    wanted: frozenset[str],
) -> ScanState:
    if element.name in wanted:
        read = read_single_property_element(element, data, state.offset, little_endian)
        if read is not None:
            LOGGER.debug("Read element '%s' (%d values).", element.name, len(read.values))
            return ScanState(read.next_offset, {**state.raw, element.name: read.values})

    next_offset = skip_element(element, data, state.offset, little_endian)
    LOGGER.debug("Skipped element '%s' (%d bytes).", element.name, next_offset - state.offset)
    return ScanState(next_offset, state.raw)


def scan_elements(
    elements: Iterable[PlyElementDescriptor],
    data: Buffer,
    little_endian: bool,
    wanted: Iterable[str] = CAMERA_ELEMENTS,
) -> dict[str, list[Scalar]]:
    """Walk all elements in order and collect the values of the wanted ones.

    `data` must start at the first element's first byte.
    """
    step = functools.partial(
        _scan_step, data=data, little_endian=little_endian, wanted=frozenset(wanted)
    )
    final = functools.reduce(step, elements, ScanState(0, {}))
    return final.raw
