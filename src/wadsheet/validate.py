from __future__ import annotations

from collections.abc import Iterable, Mapping

from lumps.geom import Rect
from lumps.report import ValidationReport, format_report

from .packer import PackedItem, PackResult
from .placement import PlacementRecord

__all__ = [
    "ValidationReport",
    "format_report",
    "validate_against_persisted",
    "validate_packing",
]

_RECORD_FIELDS = ("x", "y", "width", "height")


def _item_problems(item: PackedItem, canvas: Rect) -> list[str]:
    problems: list[str] = []
    if not item.cell.contains_rect(item.content):
        problems.append(f"content {item.content.describe()} exceeds cell {item.cell.describe()}")
    if not canvas.contains_rect(item.cell):
        problems.append(f"cell {item.cell.describe()} exceeds canvas {canvas.w}x{canvas.h}")
    if not canvas.contains_rect(item.content):
        problems.append(f"content {item.content.describe()} exceeds canvas {canvas.w}x{canvas.h}")
    return problems


def _item_details(item: PackedItem) -> str:
    return "\n".join(
        (
            f"{item.name}:",
            f"  Cell:       {item.cell.describe()}",
            f"  Content:    {item.content.describe()}",
            f"  Extraction: {item.content.describe()}",
            "  Guidelines:",
            f"    Outer: {item.guidelines.outer.describe()}",
            f"    Inner: {item.guidelines.inner.describe()}",
        )
    )


def validate_packing(
    result: PackResult,
    canvas_width: int | None = None,
    canvas_height: int | None = None,
) -> ValidationReport:
    """Check every packed item against its cell and the canvas.

    Each bad item produces exactly one error line listing all of its problems.
    Guideline placement and overlapping cells are reported as warnings. Every item
    also gets a coordinate block in ``details``.
    """
    canvas = Rect.from_size(
        result.canvas_width if canvas_width is None else canvas_width,
        result.canvas_height if canvas_height is None else canvas_height,
    )
    errors: list[str] = []
    warnings: list[str] = []
    seen: set[str] = set()

    for item in result.items:
        problems = _item_problems(item, canvas)
        if problems:
            errors.append(f"{item.name}: " + "; ".join(problems))

        outer = item.guidelines.outer
        inner = item.guidelines.inner
        if not inner.strictly_contains(item.content):
            warnings.append(f"{item.name}: inner guideline {inner.describe()} touches content {item.content.describe()}")
        if not outer.contains_rect(inner):
            warnings.append(f"{item.name}: outer guideline {outer.describe()} does not enclose inner {inner.describe()}")

        if item.name in seen:
            warnings.append(f"duplicate item name: {item.name}")
        seen.add(item.name)

    items = result.items
    for index, first in enumerate(items):
        for second in items[index + 1 :]:
            if first.cell.intersects(second.cell):
                warnings.append(f"cells of {first.name} and {second.name} overlap")

    return ValidationReport(
        errors=tuple(errors),
        warnings=tuple(warnings),
        details=tuple(_item_details(item) for item in result.items),
    )


def validate_against_persisted(
    result: PackResult,
    records: Mapping[str, PlacementRecord] | Iterable[PlacementRecord],
) -> ValidationReport:
    if isinstance(records, Mapping):
        by_name = dict(records)
    else:
        by_name = {}
        for record in records:
            by_name.setdefault(record.name, record)

    errors: list[str] = []
    warnings: list[str] = []
    packed_names: set[str] = set()

    for item in result.items:
        packed_names.add(item.name)
        record = by_name.get(item.name)
        if record is None:
            errors.append(f"{item.name}: no persisted placement record")
            continue
        content = item.content
        expected = {"x": content.x, "y": content.y, "width": content.w, "height": content.h}
        for field_name in _RECORD_FIELDS:
            persisted = getattr(record, field_name)
            if persisted != expected[field_name]:
                errors.append(
                    f"{item.name}: persisted {field_name} ({persisted}) does not match "
                    f"content {field_name} ({expected[field_name]})"
                )

    for name in by_name:
        if name not in packed_names:
            warnings.append(f"{name}: persisted record has no packed item")

    return ValidationReport(errors=tuple(errors), warnings=tuple(warnings))
