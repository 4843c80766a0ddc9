from __future__ import annotations

from collections.abc import Mapping

from PIL import Image, ImageDraw, ImageFont

from lumps.geom import Rect
from lumps.palette import Palette, nearest_index
from lumps.picture import TRANSPARENT, Opaque, Picture, Pixel, opaque

from .packer import PackResult
from .placement import SheetManifest

DEFAULT_ALPHA_THRESHOLD = 128
OUTER_GUIDE_COLOR = (255, 0, 255, 255)
INNER_GUIDE_COLOR = (0, 255, 255, 255)
LABEL_COLOR = (255, 255, 255, 255)


def picture_to_image(picture: Picture, palette: Palette) -> Image.Image:
    data = bytearray()
    for row in picture.pixels:
        for cell in row:
            if isinstance(cell, Opaque):
                r, g, b = palette[cell.index]
                data += bytes((r, g, b, 255))
            else:
                data += b"\x00\x00\x00\x00"
    return Image.frombytes("RGBA", (picture.width, picture.height), bytes(data))


def image_to_picture(
    image: Image.Image,
    palette: Palette,
    *,
    alpha_threshold: int = DEFAULT_ALPHA_THRESHOLD,
    origin_x: int = 0,
    origin_y: int = 0,
) -> Picture:
    """Quantize an image to ``palette``; pixels below ``alpha_threshold`` become transparent."""
    rgba = image.convert("RGBA")
    width, height = rgba.size
    raw = rgba.tobytes()
    cache: dict[tuple[int, int, int], Opaque] = {}
    rows: list[tuple[Pixel, ...]] = []
    for y in range(height):
        row: list[Pixel] = []
        base = y * width * 4
        for x in range(width):
            offset = base + x * 4
            if raw[offset + 3] < alpha_threshold:
                row.append(TRANSPARENT)
                continue
            rgb = (raw[offset], raw[offset + 1], raw[offset + 2])
            cell = cache.get(rgb)
            if cell is None:
                cell = opaque(nearest_index(palette, rgb))
                cache[rgb] = cell
            row.append(cell)
        rows.append(tuple(row))
    return Picture(width=width, height=height, origin_x=origin_x, origin_y=origin_y, pixels=tuple(rows))


def _draw_outline(draw: ImageDraw.ImageDraw, rect: Rect, color: tuple[int, int, int, int]) -> None:
    if rect.w <= 0 or rect.h <= 0:
        return
    draw.rectangle((rect.x, rect.y, rect.right - 1, rect.bottom - 1), outline=color)


def render_sheet(
    result: PackResult,
    images: Mapping[str, Image.Image],
    *,
    guidelines: bool = True,
    labels: bool = True,
) -> Image.Image:
    sheet = Image.new("RGBA", (result.canvas_width, result.canvas_height), (0, 0, 0, 0))
    draw = ImageDraw.Draw(sheet)
    font = ImageFont.load_default()

    for item in result.items:
        if guidelines:
            _draw_outline(draw, item.guidelines.outer, OUTER_GUIDE_COLOR)
            _draw_outline(draw, item.guidelines.inner, INNER_GUIDE_COLOR)
        if labels:
            left, top, right, bottom = draw.textbbox((0, 0), item.name, font=font)
            text_x = item.label_anchor.x - (right - left) // 2 - left
            text_y = item.label_anchor.y - (bottom - top) // 2 - top
            draw.text((text_x, text_y), item.name, fill=LABEL_COLOR, font=font)

    for item in result.items:
        image = images.get(item.name)
        if image is None:
            continue
        if image.size != (item.content.w, item.content.h):
            raise ValueError(
                f"{item.name}: image size {image.size[0]}x{image.size[1]} does not match "
                f"packed content {item.content.w}x{item.content.h}"
            )
        sheet.paste(image.convert("RGBA"), (item.content.x, item.content.y))
    return sheet


def extract_sprites(sheet: Image.Image, manifest: SheetManifest) -> dict[str, Image.Image]:
    """Crop every placement's content rectangle out of an (edited) sheet.

    A sheet that was resized by the editor is sampled at scaled coordinates and each
    crop is resized back to the persisted size.
    """
    sheet = sheet.convert("RGBA")
    scale_x = sheet.width / manifest.canvas_width if manifest.canvas_width else 1.0
    scale_y = sheet.height / manifest.canvas_height if manifest.canvas_height else 1.0
    scaled = sheet.size != (manifest.canvas_width, manifest.canvas_height)

    sprites: dict[str, Image.Image] = {}
    for record in manifest.placements:
        if not scaled:
            sprites[record.name] = sheet.crop(record.rect.box())
            continue
        left = round(record.x * scale_x)
        top = round(record.y * scale_y)
        right = max(round((record.x + record.width) * scale_x), left + 1)
        bottom = max(round((record.y + record.height) * scale_y), top + 1)
        crop = sheet.crop((left, top, right, bottom))
        sprites[record.name] = crop.resize((record.width, record.height), Image.Resampling.LANCZOS)
    return sprites
