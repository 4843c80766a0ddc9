from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import msgspec


class ConfigError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class SheetLayout:
    # Space around each image for guideline rectangles.
    padding: int = 12
    # Extra spacing between neighbouring cells; not part of the cell rect.
    gap: int = 8
    label_height: int = 20
    guideline_offset: int = 3
    # Label baseline distance below the content bottom edge.
    label_offset: int = 16

    def __post_init__(self) -> None:
        for field_name in ("padding", "gap", "label_height", "guideline_offset", "label_offset"):
            value = getattr(self, field_name)
            if value < 0:
                raise ConfigError(f"{field_name} must be non-negative, got {value}")
        if self.guideline_offset > self.padding:
            raise ConfigError(
                f"guideline_offset ({self.guideline_offset}) must not exceed padding ({self.padding})"
            )
        if self.label_offset > self.padding + self.label_height:
            raise ConfigError(
                f"label_offset ({self.label_offset}) must not exceed padding + label_height "
                f"({self.padding + self.label_height})"
            )

    def cell_size(self, width: int, height: int) -> tuple[int, int]:
        """Space one image occupies on a shelf, gap included."""
        return (
            width + self.padding * 2 + self.gap,
            height + self.padding * 2 + self.label_height + self.gap,
        )


@dataclass(frozen=True, slots=True)
class PackOptions:
    target_size: int = 1024
    max_size: int = 2048
    max_attempts: int = 10

    def __post_init__(self) -> None:
        for field_name in ("target_size", "max_size", "max_attempts"):
            value = getattr(self, field_name)
            if value <= 0:
                raise ConfigError(f"{field_name} must be positive, got {value}")

    @property
    def effective_target(self) -> int:
        return min(self.target_size, self.max_size)


class LayoutSection(msgspec.Struct, forbid_unknown_fields=True):
    padding: int = 12
    gap: int = 8
    label_height: int = 20
    guideline_offset: int = 3
    label_offset: int = 16


class OptionsSection(msgspec.Struct, forbid_unknown_fields=True):
    target_size: int = 1024
    max_size: int = 2048
    max_attempts: int = 10


class PackConfigFile(msgspec.Struct, forbid_unknown_fields=True):
    layout: LayoutSection = msgspec.field(default_factory=LayoutSection)
    options: OptionsSection = msgspec.field(default_factory=OptionsSection)


def parse_pack_config(data: bytes | str) -> tuple[PackOptions, SheetLayout]:
    try:
        raw = msgspec.json.decode(data, type=PackConfigFile)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise ConfigError(f"invalid pack config: {exc}") from exc
    options = PackOptions(
        target_size=raw.options.target_size,
        max_size=raw.options.max_size,
        max_attempts=raw.options.max_attempts,
    )
    layout = SheetLayout(
        padding=raw.layout.padding,
        gap=raw.layout.gap,
        label_height=raw.layout.label_height,
        guideline_offset=raw.layout.guideline_offset,
        label_offset=raw.layout.label_offset,
    )
    return options, layout


def load_pack_config(path: Path) -> tuple[PackOptions, SheetLayout]:
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise ConfigError(f"failed to read pack config {path}: {exc}") from exc
    return parse_pack_config(data)


def resolve_pack_config(
    path: Path | None = None,
    *,
    target_size: int | None = None,
    max_size: int | None = None,
) -> tuple[PackOptions, SheetLayout]:
    if path is None:
        options, layout = PackOptions(), SheetLayout()
    else:
        options, layout = load_pack_config(path)
    if target_size is not None or max_size is not None:
        options = PackOptions(
            target_size=options.target_size if target_size is None else target_size,
            max_size=options.max_size if max_size is None else max_size,
            max_attempts=options.max_attempts,
        )
    return options, layout
