from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import logging

from PIL import Image

from lumps.palette import Palette
from lumps.picture import (
    MAX_POST_ROW,
    EncodingRangeError,
    Picture,
    PictureFormatError,
    decode_picture,
    encode_picture,
    is_picture_lump,
)
from lumps.wad import Wad, namespace_indices, normalize_name, replace_lump_at

from .raster import DEFAULT_ALPHA_THRESHOLD, image_to_picture, picture_to_image

logger = logging.getLogger(__name__)

# Matched as name prefixes, so DEMO covers DEMO1..DEMO3 and D_ covers D_E1M1.
NON_PICTURE_PREFIXES = (
    "DEMO",
    "THINGS",
    "LINEDEFS",
    "SIDEDEFS",
    "VERTEXES",
    "SEGS",
    "SSECTORS",
    "NODES",
    "SECTORS",
    "REJECT",
    "BLOCKMAP",
    "PLAYPAL",
    "COLORMAP",
    "ENDOOM",
    "GENMIDI",
    "DMXGUS",
    "TEXTURE1",
    "TEXTURE2",
    "PNAMES",
    "D_",
    "DP_",
    "DS_",
)


def is_replaceable_lump(name: str) -> bool:
    return not normalize_name(name).startswith(NON_PICTURE_PREFIXES)


@dataclass(frozen=True, slots=True)
class Sprite:
    name: str
    picture: Picture
    # Directory position of the lump the picture was decoded from.
    index: int

    @property
    def width(self) -> int:
        return self.picture.width

    @property
    def height(self) -> int:
        return self.picture.height


@dataclass(frozen=True, slots=True)
class SkippedLump:
    name: str
    reason: str


@dataclass(frozen=True, slots=True)
class SpriteCollection:
    sprites: tuple[Sprite, ...]
    skipped: tuple[SkippedLump, ...] = ()

    def by_name(self) -> dict[str, Sprite]:
        return {sprite.name: sprite for sprite in self.sprites}


def _candidates(wad: Wad, names: Iterable[str] | None, namespace: str | None) -> list[int]:
    if namespace is not None:
        indices = list(namespace_indices(wad, namespace))
    else:
        indices = list(range(len(wad.lumps)))
    if names is None:
        return indices

    wanted = {normalize_name(name): name for name in names}
    selected = [index for index in indices if normalize_name(wad.lumps[index].name) in wanted]
    found = {normalize_name(wad.lumps[index].name) for index in selected}
    for key, name in wanted.items():
        if key not in found:
            logger.warning("lump %s not found", name)
    return selected


def collect_sprites(
    wad: Wad,
    *,
    names: Iterable[str] | None = None,
    namespace: str | None = None,
) -> SpriteCollection:
    """Decode every picture lump worth editing.

    ``names`` and ``namespace`` narrow the search; both may be given. Lumps that
    look like pictures but fail to decode, or are too tall to be written back, are
    skipped, not fatal. Repeated names keep the first picture lump in directory
    order, and the sprite remembers that lump's index.
    """
    sprites: list[Sprite] = []
    skipped: list[SkippedLump] = []
    seen: set[str] = set()
    for index in _candidates(wad, names, namespace):
        lump = wad.lumps[index]
        key = normalize_name(lump.name)
        if key in seen or lump.is_marker or not is_replaceable_lump(lump.name):
            continue
        if not is_picture_lump(lump.data):
            continue
        seen.add(key)
        try:
            picture = decode_picture(lump.data)
        except PictureFormatError as exc:
            logger.warning("skipping lump %s: %s", lump.name, exc)
            skipped.append(SkippedLump(name=lump.name, reason=str(exc)))
            continue
        if picture.height > MAX_POST_ROW:
            reason = f"height {picture.height} exceeds {MAX_POST_ROW} and cannot be re-encoded"
            logger.warning("skipping lump %s: %s", lump.name, reason)
            skipped.append(SkippedLump(name=lump.name, reason=reason))
            continue
        sprites.append(Sprite(name=lump.name, picture=picture, index=index))
    return SpriteCollection(sprites=tuple(sprites), skipped=tuple(skipped))


def sprite_images(sprites: Iterable[Sprite], palette: Palette) -> dict[str, Image.Image]:
    return {sprite.name: picture_to_image(sprite.picture, palette) for sprite in sprites}


@dataclass(frozen=True, slots=True)
class RebuildResult:
    wad: Wad
    replaced: tuple[str, ...] = ()
    failed: tuple[SkippedLump, ...] = ()


def rebuild_wad(
    wad: Wad,
    images: Mapping[str, Image.Image],
    palette: Palette,
    *,
    sprites: Iterable[Sprite] | None = None,
    alpha_threshold: int = DEFAULT_ALPHA_THRESHOLD,
) -> RebuildResult:
    """Re-encode edited sprite images into ``wad``, keeping each lump's origin offsets.

    Each image is written over the lump its sprite was collected from. Without
    ``sprites`` the targets are collected by name. An image that cannot be encoded
    is reported in ``failed`` and leaves its lump untouched.
    """
    if sprites is None:
        sprites = collect_sprites(wad, names=[name for name in images if is_replaceable_lump(name)]).sprites
    targets = {normalize_name(sprite.name): sprite for sprite in sprites}

    replaced: list[str] = []
    failed: list[SkippedLump] = []
    for name, image in images.items():
        if not is_replaceable_lump(name):
            logger.warning("refusing to replace non-picture lump %s", name)
            continue
        sprite = targets.get(normalize_name(name))
        if sprite is None:
            logger.warning("no picture lump %s to replace, skipping", name)
            continue
        try:
            data = encode_picture(
                image_to_picture(
                    image,
                    palette,
                    alpha_threshold=alpha_threshold,
                    origin_x=sprite.picture.origin_x,
                    origin_y=sprite.picture.origin_y,
                )
            )
        except EncodingRangeError as exc:
            logger.warning("cannot encode %s: %s", name, exc)
            failed.append(SkippedLump(name=name, reason=str(exc)))
            continue
        wad = replace_lump_at(wad, sprite.index, data)
        replaced.append(name)
    return RebuildResult(wad=wad, replaced=tuple(replaced), failed=tuple(failed))
