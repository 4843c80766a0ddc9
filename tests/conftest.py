from __future__ import annotations

from collections.abc import Callable, Sequence
import struct
import sys
from pathlib import Path

import pytest


def pytest_configure(config: pytest.Config) -> None:
    # Ensure the local `src/` tree wins over any other editable install that may exist
    # (e.g. a different git worktree pointing at the same project).
    src_dir = Path(__file__).resolve().parents[1] / "src"
    src_str = str(src_dir)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


def build_wad_bytes(lumps: Sequence[tuple[str, bytes]], *, magic: bytes = b"PWAD") -> bytes:
    payload = bytearray()
    directory = bytearray()
    for name, data in lumps:
        directory += struct.pack("<ii8s", 12 + len(payload), len(data), name.encode("ascii"))
        payload += data
    header = struct.pack("<4sii", magic, len(lumps), 12 + len(payload))
    return header + bytes(payload) + bytes(directory)


def build_picture_bytes(
    width: int,
    height: int,
    columns: Sequence[Sequence[tuple[int, bytes]]],
    *,
    origin_x: int = 0,
    origin_y: int = 0,
) -> bytes:
    """Hand-assemble a picture lump from per-column ``(start_row, indices)`` posts."""
    bodies = []
    for posts in columns:
        body = bytearray()
        for start_row, indices in posts:
            body += bytes((start_row, len(indices), 0)) + indices + b"\x00"
        body.append(0xFF)
        bodies.append(bytes(body))
    offsets = []
    position = 8 + 4 * width
    for body in bodies:
        offsets.append(position)
        position += len(body)
    header = struct.pack("<hhhh", width, height, origin_x, origin_y)
    return header + struct.pack(f"<{width}i", *offsets) + b"".join(bodies)


@pytest.fixture
def make_wad() -> Callable[..., bytes]:
    return build_wad_bytes


@pytest.fixture
def make_picture() -> Callable[..., bytes]:
    return build_picture_bytes
