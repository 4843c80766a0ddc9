from __future__ import annotations

from dataclasses import replace

import msgspec

from lumps.geom import Rect
from wadsheet.packer import PackImage, PackResult, pack
from wadsheet.placement import PlacementRecord, records_from_pack
from wadsheet.validate import format_report, validate_against_persisted, validate_packing


def _packed() -> PackResult:
    return pack([PackImage("TROOA1", 41, 57), PackImage("POSSA1", 37, 55), PackImage("BAR1A0", 23, 32)])


def test_fresh_pack_validates_cleanly() -> None:
    result = _packed()
    report = validate_packing(result)
    assert report.valid
    assert report.warnings == ()
    assert validate_against_persisted(result, records_from_pack(result)).errors == ()


def test_one_pixel_shift_is_exactly_one_error() -> None:
    result = _packed()
    records = records_from_pack(result)
    shifted = [
        msgspec.structs.replace(record, x=record.x + 1) if record.name == "POSSA1" else record for record in records
    ]

    report = validate_against_persisted(result, shifted)

    assert len(report.errors) == 1
    assert "POSSA1" in report.errors[0]
    assert "persisted x" in report.errors[0]


def test_each_mismatched_field_is_its_own_error() -> None:
    result = _packed()
    records = {record.name: record for record in records_from_pack(result)}
    original = records["TROOA1"]
    records["TROOA1"] = PlacementRecord(
        name="TROOA1", x=original.x, y=original.y + 2, width=original.width + 1, height=original.height
    )

    report = validate_against_persisted(result, records)

    assert len(report.errors) == 2
    assert any("persisted y" in error for error in report.errors)
    assert any("persisted width" in error for error in report.errors)


def test_missing_and_extra_records() -> None:
    result = _packed()
    records = [record for record in records_from_pack(result) if record.name != "BAR1A0"]
    records.append(PlacementRecord(name="GHOST", x=0, y=0, width=1, height=1))

    report = validate_against_persisted(result, records)

    assert report.errors == ("BAR1A0: no persisted placement record",)
    assert report.warnings == ("GHOST: persisted record has no packed item",)


def test_five_items_three_out_of_bounds_gives_three_errors() -> None:
    result = pack([PackImage(f"ITEM{index}", 20, 20) for index in range(5)])
    items = list(result.items)
    for index in (0, 2, 4):
        item = items[index]
        items[index] = replace(item, content=item.content.offset(dx=result.canvas_width))

    report = validate_packing(replace(result, items=tuple(items)))

    assert len(report.errors) == 3
    for index in (0, 2, 4):
        assert any(error.startswith(f"{items[index].name}:") for error in report.errors)


def test_all_problems_of_one_item_share_one_line() -> None:
    result = pack([PackImage("A", 10, 10)])
    item = result.items[0]
    broken = replace(item, cell=Rect(0, 0, 5, 5), content=Rect(-4, 0, 10, 10))

    report = validate_packing(replace(result, items=(broken,)))

    assert len(report.errors) == 1
    assert "exceeds cell" in report.errors[0]
    assert "exceeds canvas" in report.errors[0]


def test_explicit_canvas_overrides_packed_size() -> None:
    result = _packed()
    report = validate_packing(result, canvas_width=32, canvas_height=32)
    assert len(report.errors) == len(result.items)


def test_guideline_and_duplicate_warnings() -> None:
    result = pack([PackImage("A", 10, 10), PackImage("B", 10, 10)])
    first, second = result.items
    touching = replace(first.guidelines, inner=first.content)
    items = (replace(first, guidelines=touching), replace(second, name="A"))

    report = validate_packing(replace(result, items=items))

    assert report.valid
    assert any("inner guideline" in warning for warning in report.warnings)
    assert "duplicate item name: A" in report.warnings


def test_format_report() -> None:
    result = _packed()
    records = records_from_pack(result)
    report = validate_against_persisted(result, records[1:])
    text = format_report(report, title="Layout")

    assert text.splitlines()[0] == "=== Layout ==="
    assert "Status: INVALID (1 errors, 0 warnings)" in text
    assert "  - " in text


def test_coordinate_details_are_printed_on_request() -> None:
    result = pack([PackImage("A", 10, 10)])
    item = result.items[0]
    report = validate_packing(result)

    assert len(report.details) == 1
    assert "Coordinate details:" not in format_report(report, title="Layout")

    text = format_report(report, title="Layout", show_details=True)
    assert "Coordinate details:" in text
    assert "  A:" in text.splitlines()
    assert f"Cell:       {item.cell.describe()}" in text
    assert f"Extraction: {item.content.describe()}" in text
    assert f"Outer: {item.guidelines.outer.describe()}" in text
    assert f"Inner: {item.guidelines.inner.describe()}" in text
