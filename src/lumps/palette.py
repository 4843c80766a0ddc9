from __future__ import annotations

from .wad import Wad, find_lump

PALETTE_LUMP = "PLAYPAL"
PALETTE_SIZE = 256
PALETTE_BYTES = PALETTE_SIZE * 3

RGB = tuple[int, int, int]
Palette = tuple[RGB, ...]


class PaletteError(ValueError):
    pass


def parse_palette(data: bytes) -> Palette:
    """First palette of a ``PLAYPAL`` lump; the remaining 13 tinted palettes are ignored."""
    if len(data) < PALETTE_BYTES:
        raise PaletteError(f"palette too small: {len(data)} bytes (need {PALETTE_BYTES})")
    return tuple((data[i], data[i + 1], data[i + 2]) for i in range(0, PALETTE_BYTES, 3))


def default_palette() -> Palette:
    return tuple((i, i, i) for i in range(PALETTE_SIZE))


def palette_from_wad(wad: Wad) -> Palette:
    lump = find_lump(wad, PALETTE_LUMP)
    if lump is None:
        return default_palette()
    return parse_palette(lump.data)


def nearest_index(palette: Palette, rgb: RGB) -> int:
    r, g, b = rgb[0], rgb[1], rgb[2]
    best_index = 0
    best_distance = -1
    for index, (pr, pg, pb) in enumerate(palette):
        distance = (pr - r) * (pr - r) + (pg - g) * (pg - g) + (pb - b) * (pb - b)
        if best_distance < 0 or distance < best_distance:
            best_index = index
            best_distance = distance
            if distance == 0:
                break
    return best_index
