"""Shared fixtures for building binary PLY payloads byte by byte."""

from __future__ import annotations

import struct

import pytest

_STRUCT_CHARS = {
    "char": "b",
    "uchar": "B",
    "short": "h",
    "ushort": "H",
    "int": "i",
    "uint": "I",
    "float": "f",
    "double": "d",
}


def build_ply(elements, *, byte_order="<", comments=(), counts=None):
    """Build a binary PLY file.

    `elements` is a list of (name, properties, rows). A property is either
    (name, type) or (name, count_type, value_type) for a list property; each
    row holds one value per property, a sequence for list properties.
    `counts` optionally overrides the declared count per element name.
    """
    format_name = {"<": "binary_little_endian", ">": "binary_big_endian"}[byte_order]
    lines = ["ply", f"format {format_name} 1.0"]
    lines.extend(f"comment {comment}" for comment in comments)

    body = bytearray()
    for name, props, rows in elements:
        count = (counts or {}).get(name, len(rows))
        lines.append(f"element {name} {count}")
        for prop in props:
            if len(prop) == 2:
                lines.append(f"property {prop[1]} {prop[0]}")
            else:
                lines.append(f"property list {prop[1]} {prop[2]} {prop[0]}")
        for row in rows:
            for prop, value in zip(props, row):
                if len(prop) == 2:
                    body += struct.pack(byte_order + _STRUCT_CHARS[prop[1]], value)
                else:
                    body += struct.pack(byte_order + _STRUCT_CHARS[prop[1]], len(value))
                    body += struct.pack(
                        f"{byte_order}{len(value)}{_STRUCT_CHARS[prop[2]]}", *value
                    )
    lines.append("end_header")
    return ("\n".join(lines) + "\n").encode("ascii") + bytes(body)


def scalar_element(name, prop_type, values):
    return (name, [(name, prop_type)], [(value,) for value in values])


def vertex_element(count=3):
    props = [("x", "float"), ("y", "float"), ("z", "float"), ("red", "uchar")]
    rows = [(float(i), float(i) + 0.5, -float(i), i % 256) for i in range(count)]
    return ("vertex", props, rows)


@pytest.fixture
def make_ply():
    return build_ply


@pytest.fixture
def scalar_el():
    return scalar_element


@pytest.fixture
def vertex_el():
    return vertex_element
