from __future__ import annotations

import pytest

from lumps import wad as wad_mod
from lumps.palette import PaletteError, default_palette, nearest_index, palette_from_wad, parse_palette


def _playpal(count: int = 1) -> bytes:
    first = bytes(v for i in range(256) for v in (i, 255 - i, (i * 7) % 256))
    return first + b"\x10" * 768 * (count - 1)


def test_parse_palette_uses_first_palette_only() -> None:
    palette = parse_palette(_playpal(count=14))
    assert len(palette) == 256
    assert palette[0] == (0, 255, 0)
    assert palette[255] == (255, 0, (255 * 7) % 256)


def test_parse_palette_rejects_short_data() -> None:
    with pytest.raises(PaletteError, match="767 bytes"):
        parse_palette(b"\x00" * 767)


def test_default_palette_is_grayscale() -> None:
    palette = default_palette()
    assert len(palette) == 256
    assert palette[0] == (0, 0, 0)
    assert palette[128] == (128, 128, 128)


def test_palette_from_wad_falls_back_to_default() -> None:
    empty = wad_mod.Wad(kind=wad_mod.WadKind.PWAD)
    assert palette_from_wad(empty) == default_palette()

    with_playpal = wad_mod.add_lump(empty, "PLAYPAL", _playpal())
    assert palette_from_wad(with_playpal)[1] == (1, 254, 7)


def test_nearest_index_prefers_exact_then_first_tie() -> None:
    palette = ((0, 0, 0), (10, 10, 10), (10, 10, 10), (255, 255, 255))
    assert nearest_index(palette, (10, 10, 10)) == 1
    assert nearest_index(palette, (200, 200, 200)) == 3
    assert nearest_index(palette, (5, 5, 5)) == 0
