from __future__ import annotations

from pathlib import Path

import msgspec

from lumps.geom import Rect

from .config import SheetLayout
from .packer import PackResult, derive_item

MANIFEST_FORMAT_VERSION = 1


class PlacementError(ValueError):
    pass


class PlacementRecord(msgspec.Struct, frozen=True, forbid_unknown_fields=True):
    """Content rectangle of one sprite on a sheet, as persisted next to the PNG."""

    name: str
    x: int
    y: int
    width: int
    height: int

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)


class SheetManifest(msgspec.Struct, forbid_unknown_fields=True):
    canvas_width: int
    canvas_height: int
    placements: list[PlacementRecord] = msgspec.field(default_factory=list)
    format_version: int = MANIFEST_FORMAT_VERSION

    def record(self, name: str) -> PlacementRecord | None:
        for record in self.placements:
            if record.name == name:
                return record
        return None


def records_from_pack(result: PackResult) -> list[PlacementRecord]:
    return [
        PlacementRecord(
            name=item.name,
            x=item.content.x,
            y=item.content.y,
            width=item.content.w,
            height=item.content.h,
        )
        for item in result.items
    ]


def manifest_from_pack(result: PackResult) -> SheetManifest:
    return SheetManifest(
        canvas_width=result.canvas_width,
        canvas_height=result.canvas_height,
        placements=records_from_pack(result),
    )


def dumps_manifest(manifest: SheetManifest) -> bytes:
    return msgspec.json.format(msgspec.json.encode(manifest), indent=2) + b"\n"


def loads_manifest(data: bytes | str) -> SheetManifest:
    try:
        manifest = msgspec.json.decode(data, type=SheetManifest)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise PlacementError(f"invalid sheet manifest: {exc}") from exc
    if manifest.format_version != MANIFEST_FORMAT_VERSION:
        raise PlacementError(
            f"unsupported manifest format_version {manifest.format_version} (expected {MANIFEST_FORMAT_VERSION})"
        )
    return manifest


def load_manifest(path: Path) -> SheetManifest:
    return loads_manifest(Path(path).read_bytes())


def save_manifest(manifest: SheetManifest, path: Path) -> None:
    Path(path).write_bytes(dumps_manifest(manifest))


def pack_result_from_manifest(manifest: SheetManifest, layout: SheetLayout | None = None) -> PackResult:
    """Rebuild full item geometry from persisted content rectangles."""
    if layout is None:
        layout = SheetLayout()
    items = tuple(
        derive_item(
            record.name,
            record.x - layout.padding,
            record.y - layout.padding,
            record.width,
            record.height,
            layout,
        )
        for record in manifest.placements
    )
    return PackResult(canvas_width=manifest.canvas_width, canvas_height=manifest.canvas_height, items=items)
