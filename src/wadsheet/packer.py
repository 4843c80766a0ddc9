from __future__ import annotations

"""Shelf packer for sprite sheets.

Images are grouped by size class (large, medium, small), then stably sorted by
height so every shelf is opened by its tallest member. The first canvas is a
power-of-two estimate from the total cell area; on failure the smaller side is
doubled until ``PackOptions.max_size`` is reached.

Every packed item carries the derived cell, content, guideline and label
geometry, so rendering, validation and extraction read coordinates from one
place instead of recomputing them.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import IntEnum
import logging
import math
from typing import Protocol

from lumps.geom import Point, Rect

from .config import PackOptions, SheetLayout

logger = logging.getLogger(__name__)

LARGE_MAX_DIM = 128
LARGE_AREA = 16384
MEDIUM_MAX_DIM = 64
MEDIUM_AREA = 4096
AREA_SLACK = 1.3
MIN_RECT_SIDE = 512
WIDE_ASPECT = 1.5
TALL_ASPECT = 0.67


class PackingOverflowError(RuntimeError):
    pass


class PackingInvariantError(AssertionError):
    pass


class SizeCategory(IntEnum):
    LARGE = 0
    MEDIUM = 1
    SMALL = 2


class PackInput(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...


@dataclass(frozen=True, slots=True)
class PackImage:
    name: str
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class Guidelines:
    outer: Rect
    inner: Rect


@dataclass(frozen=True, slots=True)
class PackedItem:
    name: str
    cell: Rect
    content: Rect
    guidelines: Guidelines
    label_anchor: Point


@dataclass(frozen=True, slots=True)
class PackResult:
    canvas_width: int
    canvas_height: int
    items: tuple[PackedItem, ...] = ()

    @property
    def canvas(self) -> Rect:
        return Rect.from_size(self.canvas_width, self.canvas_height)

    def item(self, name: str) -> PackedItem | None:
        for item in self.items:
            if item.name == name:
                return item
        return None


@dataclass(frozen=True, slots=True)
class Shelf:
    x: int
    y: int
    remaining_width: int
    height: int

    @property
    def bottom(self) -> int:
        return self.y + self.height


def classify(width: int, height: int) -> SizeCategory:
    max_dim = max(width, height)
    area = width * height
    if max_dim > LARGE_MAX_DIM or area > LARGE_AREA:
        return SizeCategory.LARGE
    if max_dim > MEDIUM_MAX_DIM or area > MEDIUM_AREA:
        return SizeCategory.MEDIUM
    return SizeCategory.SMALL


def packing_order(images: Sequence[PackInput]) -> list[PackInput]:
    # Both sorts are stable: equal heights keep size-class order, then input order.
    grouped = sorted(images, key=lambda image: classify(image.width, image.height))
    return sorted(grouped, key=lambda image: image.height, reverse=True)


def next_pow2(value: int) -> int:
    return 1 << max(value - 1, 0).bit_length()


def estimate_canvas_size(
    images: Sequence[PackInput],
    options: PackOptions,
    layout: SheetLayout,
) -> tuple[int, int]:
    total_area = 0
    for image in images:
        cell_w, cell_h = layout.cell_size(image.width, image.height)
        total_area += cell_w * cell_h
    side = min(next_pow2(math.ceil(math.sqrt(total_area * AREA_SLACK))), options.max_size)

    avg_aspect = sum(image.width / image.height for image in images) / len(images)
    if avg_aspect > WIDE_ASPECT:
        width, height = side, max(side // 2, MIN_RECT_SIDE)
    elif avg_aspect < TALL_ASPECT:
        width, height = max(side // 2, MIN_RECT_SIDE), side
    else:
        width, height = side, side
    width = min(width, options.max_size)
    height = min(height, options.max_size)

    target = options.effective_target
    if width > target or height > target:
        width, height = target, target
    return width, height


def derive_item(
    name: str,
    cell_x: int,
    cell_y: int,
    width: int,
    height: int,
    layout: SheetLayout,
) -> PackedItem:
    content = Rect(cell_x + layout.padding, cell_y + layout.padding, width, height)
    cell = Rect(
        cell_x,
        cell_y,
        width + layout.padding * 2,
        height + layout.padding * 2 + layout.label_height,
    )
    return PackedItem(
        name=name,
        cell=cell,
        content=content,
        guidelines=Guidelines(
            outer=cell.inset(layout.guideline_offset),
            inner=content.outset(layout.guideline_offset),
        ),
        label_anchor=Point(content.x + width // 2, content.bottom + layout.label_offset),
    )


def _check_item(item: PackedItem, canvas: Rect) -> None:
    rects = (
        ("cell", item.cell),
        ("content", item.content),
        ("outer guideline", item.guidelines.outer),
        ("inner guideline", item.guidelines.inner),
    )
    for label, rect in rects:
        if not canvas.contains_rect(rect):
            raise PackingInvariantError(
                f"{item.name}: {label} {rect.describe()} outside canvas {canvas.w}x{canvas.h}"
            )
    if not canvas.contains_point(item.label_anchor):
        raise PackingInvariantError(
            f"{item.name}: label anchor ({item.label_anchor.x}, {item.label_anchor.y}) "
            f"outside canvas {canvas.w}x{canvas.h}"
        )


def _place(
    shelves: tuple[Shelf, ...],
    cell_w: int,
    cell_h: int,
    canvas_w: int,
    canvas_h: int,
) -> tuple[tuple[Shelf, ...], int, int] | None:
    for index, shelf in enumerate(shelves):
        if shelf.remaining_width >= cell_w and shelf.height >= cell_h:
            updated = Shelf(
                x=shelf.x + cell_w,
                y=shelf.y,
                remaining_width=shelf.remaining_width - cell_w,
                height=shelf.height,
            )
            return shelves[:index] + (updated,) + shelves[index + 1 :], shelf.x, shelf.y

    shelf_y = max((shelf.bottom for shelf in shelves), default=0)
    if cell_w > canvas_w or shelf_y + cell_h > canvas_h:
        return None
    opened = Shelf(x=cell_w, y=shelf_y, remaining_width=canvas_w - cell_w, height=cell_h)
    return shelves + (opened,), 0, shelf_y


def try_pack(
    ordered: Sequence[PackInput],
    canvas_width: int,
    canvas_height: int,
    layout: SheetLayout,
) -> PackResult | None:
    """One shelf pass at a fixed canvas size; ``None`` when something does not fit."""
    canvas = Rect.from_size(canvas_width, canvas_height)
    shelves: tuple[Shelf, ...] = ()
    items: list[PackedItem] = []
    for image in ordered:
        cell_w, cell_h = layout.cell_size(image.width, image.height)
        placed = _place(shelves, cell_w, cell_h, canvas_width, canvas_height)
        if placed is None:
            return None
        shelves, cell_x, cell_y = placed
        item = derive_item(image.name, cell_x, cell_y, image.width, image.height, layout)
        _check_item(item, canvas)
        items.append(item)
    return PackResult(canvas_width=canvas_width, canvas_height=canvas_height, items=tuple(items))


def _grow(width: int, height: int, max_size: int) -> tuple[int, int]:
    if width <= height:
        return min(width * 2, max_size), height
    return width, min(height * 2, max_size)


def pack(
    images: Sequence[PackInput],
    options: PackOptions | None = None,
    layout: SheetLayout | None = None,
) -> PackResult:
    if options is None:
        options = PackOptions()
    if layout is None:
        layout = SheetLayout()
    if not images:
        return PackResult(canvas_width=0, canvas_height=0, items=())
    for image in images:
        if image.width <= 0 or image.height <= 0:
            raise ValueError(f"{image.name}: image dimensions must be positive, got {image.width}x{image.height}")

    ordered = packing_order(images)
    width, height = estimate_canvas_size(ordered, options, layout)
    logger.debug("packing %d images, initial canvas %dx%d", len(ordered), width, height)

    for attempt in range(1, options.max_attempts + 1):
        result = try_pack(ordered, width, height, layout)
        if result is not None:
            return result
        if attempt == options.max_attempts or (width >= options.max_size and height >= options.max_size):
            break
        width, height = _grow(width, height, options.max_size)
        logger.debug("attempt %d failed, growing canvas to %dx%d", attempt, width, height)

    largest = max(ordered, key=lambda image: image.width * image.height)
    raise PackingOverflowError(
        f"failed to pack {len(ordered)} images (largest {largest.name} {largest.width}x{largest.height}) "
        f"into a canvas of {width}x{height} after {attempt} attempts; reduce the batch or raise max_size"
    )


def pack_sheets(
    images: Sequence[PackInput],
    options: PackOptions | None = None,
    layout: SheetLayout | None = None,
) -> tuple[PackResult, ...]:
    """Pack onto as many canvases as needed, halving the batch on overflow."""
    try:
        return (pack(images, options, layout),)
    except PackingOverflowError:
        if len(images) <= 1:
            raise
    ordered = packing_order(images)
    middle = len(ordered) // 2
    logger.debug("splitting %d images into batches of %d and %d", len(ordered), middle, len(ordered) - middle)
    return pack_sheets(ordered[:middle], options, layout) + pack_sheets(ordered[middle:], options, layout)
