from __future__ import annotations

"""Fixed-width field helpers shared by the record layouts."""

import struct

ID_WIDTH = 64
LAYOUT_VERSION = 1


def pack_id(value: str, name: str) -> bytes:
    raw = value.encode("utf-8")
    if not raw or len(raw) > ID_WIDTH or b"\x00" in raw:
        raise ValueError(f"{name} must be 1..{ID_WIDTH} utf-8 bytes without NUL, got {value!r}")
    return raw


def unpack_id(raw: bytes) -> str:
    return raw.rstrip(b"\x00").decode("utf-8")


def check_version(version: int, kind: str) -> None:
    if version != LAYOUT_VERSION:
        raise ValueError(f"unsupported {kind} layout version {version}")


def unpack_exact(layout: struct.Struct, data: bytes, kind: str) -> tuple:
    if len(data) < layout.size:
        raise ValueError(f"{kind} record too short: {len(data)} < {layout.size}")
    return layout.unpack_from(data, 0)
