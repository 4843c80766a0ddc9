from __future__ import annotations

"""
DOOM picture (patch) format.

Layout:
  - i16 width, i16 height, i16 origin_x, i16 origin_y
  - i32 column_offsets[width], relative to the start of the lump
  - per column, a stream of posts terminated by 0xFF:
      u8 start_row, u8 length, u8 pad, u8 indices[length], u8 pad

Rows not covered by any post are transparent. There is no transparent palette
index; transparency is the absence of a post.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from construct import Array, Byte, Bytes, Int16sl, Int32sl, Padding, Struct, this
from construct.core import ConstructError

from .cursor import Cursor

MAX_DIMENSION = 4096
MAX_POST_ROW = 255
MAX_POSTS_PER_COLUMN = 256
POST_END = 0xFF

PICTURE_HEADER = Struct(
    "width" / Int16sl,
    "height" / Int16sl,
    "origin_x" / Int16sl,
    "origin_y" / Int16sl,
)
PICTURE_HEADER_SIZE = PICTURE_HEADER.sizeof()

POST = Struct(
    "start_row" / Byte,
    "length" / Byte,
    Padding(1),
    "indices" / Bytes(this.length),
    Padding(1),
)

COLUMN_OFFSETS = Array(this.width, Int32sl)


class PictureFormatError(ValueError):
    pass


class EncodingRangeError(ValueError):
    pass


class Transparent(Enum):
    TRANSPARENT = "transparent"


TRANSPARENT = Transparent.TRANSPARENT


@dataclass(frozen=True, slots=True)
class Opaque:
    index: int

    def __post_init__(self) -> None:
        if not 0 <= self.index <= 255:
            raise ValueError(f"palette index out of range: {self.index}")


_OPAQUE = tuple(Opaque(index) for index in range(256))


def opaque(index: int) -> Opaque:
    if not 0 <= index <= 255:
        raise ValueError(f"palette index out of range: {index}")
    return _OPAQUE[index]


Pixel = Opaque | Transparent


@dataclass(frozen=True, slots=True)
class Post:
    start_row: int
    indices: bytes

    @property
    def length(self) -> int:
        return len(self.indices)

    @property
    def end_row(self) -> int:
        return self.start_row + len(self.indices)


@dataclass(frozen=True, slots=True)
class Picture:
    width: int
    height: int
    origin_x: int
    origin_y: int
    pixels: tuple[tuple[Pixel, ...], ...]

    def __post_init__(self) -> None:
        if len(self.pixels) != self.height:
            raise ValueError(f"pixel grid has {len(self.pixels)} rows, expected {self.height}")
        for y, row in enumerate(self.pixels):
            if len(row) != self.width:
                raise ValueError(f"pixel row {y} has {len(row)} cells, expected {self.width}")

    def pixel(self, x: int, y: int) -> Pixel:
        return self.pixels[y][x]

    def columns(self) -> tuple[tuple[Post, ...], ...]:
        return pixels_to_columns(self.pixels, self.width, self.height)

    @classmethod
    def from_indices(
        cls,
        rows: Sequence[Sequence[int | None]],
        *,
        origin_x: int = 0,
        origin_y: int = 0,
    ) -> Picture:
        height = len(rows)
        width = len(rows[0]) if rows else 0
        pixels = tuple(
            tuple(TRANSPARENT if value is None else opaque(value) for value in row) for row in rows
        )
        return cls(width=width, height=height, origin_x=origin_x, origin_y=origin_y, pixels=pixels)

    def to_indices(self) -> list[list[int | None]]:
        return [[cell.index if isinstance(cell, Opaque) else None for cell in row] for row in self.pixels]


def _decode_column(cursor: Cursor, height: int, grid: list[list[Pixel]], x: int) -> None:
    for _ in range(MAX_POSTS_PER_COLUMN):
        start_row = cursor.u8()
        if start_row == POST_END:
            return
        length = cursor.u8()
        cursor.read(1)
        indices = cursor.read(length)
        cursor.read(1)
        for offset, index in enumerate(indices):
            y = start_row + offset
            if y >= height:
                break
            grid[y][x] = _OPAQUE[index]
    raise PictureFormatError(f"no end marker within {MAX_POSTS_PER_COLUMN} posts")


def decode_picture(data: bytes) -> Picture:
    data = bytes(data)
    if len(data) < PICTURE_HEADER_SIZE:
        raise PictureFormatError(
            f"picture too small: {len(data)} bytes (need at least {PICTURE_HEADER_SIZE})"
        )
    cursor = Cursor(data, error=PictureFormatError, label="picture")
    header = cursor.parse(PICTURE_HEADER)
    width = int(header.width)
    height = int(header.height)
    if not 1 <= width <= MAX_DIMENSION or not 1 <= height <= MAX_DIMENSION:
        raise PictureFormatError(f"invalid picture dimensions: {width}x{height}")

    table_size = width * 4
    if cursor.remaining < table_size:
        raise PictureFormatError(
            f"column offset table truncated: need {table_size} bytes, have {cursor.remaining}"
        )
    try:
        offsets = COLUMN_OFFSETS.parse(cursor.read(table_size), width=width)
    except ConstructError as exc:
        raise PictureFormatError(f"failed to parse column offsets: {exc}") from exc

    grid: list[list[Pixel]] = [[TRANSPARENT] * width for _ in range(height)]
    for x, offset in enumerate(offsets):
        if not 0 <= offset < len(data):
            raise PictureFormatError(f"column {x} offset {offset} is out of bounds (size {len(data)})")
        cursor.seek(offset)
        try:
            _decode_column(cursor, height, grid, x)
        except PictureFormatError as exc:
            raise PictureFormatError(f"column {x} at offset {offset}: {exc}") from exc

    return Picture(
        width=width,
        height=height,
        origin_x=int(header.origin_x),
        origin_y=int(header.origin_y),
        pixels=tuple(tuple(row) for row in grid),
    )


def pixels_to_columns(
    pixels: Sequence[Sequence[Pixel]],
    width: int,
    height: int,
) -> tuple[tuple[Post, ...], ...]:
    """Split a row-major pixel grid into column posts.

    A post is a maximal vertical run of opaque cells. Runs are never split, so a
    run longer than 255 or starting at row 255 or below cannot be represented.
    """
    columns: list[tuple[Post, ...]] = []
    for x in range(width):
        posts: list[Post] = []
        run_start: int | None = None
        run: bytearray = bytearray()
        for y in range(height + 1):
            cell = pixels[y][x] if y < height else TRANSPARENT
            if isinstance(cell, Opaque):
                if run_start is None:
                    run_start = y
                    run = bytearray()
                run.append(cell.index)
                continue
            if run_start is None:
                continue
            if run_start >= MAX_POST_ROW:
                raise EncodingRangeError(f"column {x}: post starts at row {run_start} (max {MAX_POST_ROW - 1})")
            if len(run) > MAX_POST_ROW:
                raise EncodingRangeError(f"column {x}: post at row {run_start} is {len(run)} pixels long (max 255)")
            posts.append(Post(start_row=run_start, indices=bytes(run)))
            run_start = None
        columns.append(tuple(posts))
    return tuple(columns)


def _encode_column(posts: Iterable[Post]) -> bytes:
    out = bytearray()
    for post in posts:
        out += POST.build({"start_row": post.start_row, "length": post.length, "indices": post.indices})
    out.append(POST_END)
    return bytes(out)


def encode_picture(picture: Picture) -> bytes:
    if not 1 <= picture.width <= MAX_DIMENSION:
        raise EncodingRangeError(f"picture width {picture.width} is out of range (1..{MAX_DIMENSION})")
    if not 1 <= picture.height <= MAX_POST_ROW:
        raise EncodingRangeError(f"picture height {picture.height} is out of range (1..{MAX_POST_ROW})")
    for label, value in (("origin_x", picture.origin_x), ("origin_y", picture.origin_y)):
        if not -0x8000 <= value <= 0x7FFF:
            raise EncodingRangeError(f"{label} {value} does not fit in int16")

    columns = pixels_to_columns(picture.pixels, picture.width, picture.height)
    try:
        header = PICTURE_HEADER.build(
            {
                "width": picture.width,
                "height": picture.height,
                "origin_x": picture.origin_x,
                "origin_y": picture.origin_y,
            }
        )
        column_data = [_encode_column(posts) for posts in columns]
        offsets: list[int] = []
        position = PICTURE_HEADER_SIZE + picture.width * 4
        for chunk in column_data:
            offsets.append(position)
            position += len(chunk)
        table = COLUMN_OFFSETS.build(offsets, width=picture.width)
    except ConstructError as exc:
        raise EncodingRangeError(f"failed to encode picture: {exc}") from exc
    return header + table + b"".join(column_data)


def is_picture_lump(data: bytes) -> bool:
    """Cheap header probe; a True result does not guarantee ``decode_picture`` succeeds."""
    if len(data) < PICTURE_HEADER_SIZE + 8:
        return False
    try:
        header = PICTURE_HEADER.parse(data[:PICTURE_HEADER_SIZE])
    except ConstructError:
        return False
    width = int(header.width)
    height = int(header.height)
    if not 1 <= width <= MAX_DIMENSION or not 1 <= height <= MAX_DIMENSION:
        return False
    table_end = PICTURE_HEADER_SIZE + width * 4
    if table_end > len(data):
        return False
    first_offset = int.from_bytes(data[PICTURE_HEADER_SIZE : PICTURE_HEADER_SIZE + 4], "little", signed=True)
    return table_end <= first_offset < len(data)
