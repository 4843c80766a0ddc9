from __future__ import annotations

from PIL import Image

from lumps.palette import default_palette
from lumps.picture import Picture
from wadsheet.packer import PackImage, pack
from wadsheet.placement import manifest_from_pack
from wadsheet.raster import extract_sprites, image_to_picture, picture_to_image, render_sheet


def _distinct_palette() -> tuple[tuple[int, int, int], ...]:
    return tuple((index, (index * 3) % 256, 255 - index) for index in range(256))


def test_picture_image_picture_identity() -> None:
    palette = _distinct_palette()
    picture = Picture.from_indices(
        [
            [None, 0, 17],
            [255, None, 128],
        ],
        origin_x=4,
        origin_y=9,
    )
    image = picture_to_image(picture, palette)

    assert image.mode == "RGBA"
    assert image.size == (3, 2)
    assert image.getpixel((0, 0)) == (0, 0, 0, 0)
    assert image.getpixel((2, 0)) == (*palette[17], 255)

    back = image_to_picture(image, palette, origin_x=4, origin_y=9)
    assert back == picture


def test_alpha_threshold_controls_transparency() -> None:
    image = Image.new("RGBA", (2, 1))
    image.putpixel((0, 0), (50, 50, 50, 127))
    image.putpixel((1, 0), (50, 50, 50, 128))

    picture = image_to_picture(image, default_palette())
    assert picture.to_indices() == [[None, 50]]
    assert image_to_picture(image, default_palette(), alpha_threshold=0).to_indices() == [[50, 50]]


def test_rgb_images_quantize_to_nearest_entry() -> None:
    image = Image.new("RGB", (1, 1), (101, 99, 100))
    assert image_to_picture(image, default_palette()).to_indices() == [[100]]


def test_render_sheet_places_images_at_content_origin() -> None:
    images = {
        "RED": Image.new("RGBA", (10, 6), (255, 0, 0, 255)),
        "BLUE": Image.new("RGBA", (4, 12), (0, 0, 255, 255)),
    }
    result = pack([PackImage(name, image.width, image.height) for name, image in images.items()])
    sheet = render_sheet(result, images, guidelines=False, labels=False)

    assert sheet.size == (result.canvas_width, result.canvas_height)
    red = result.item("RED").content
    blue = result.item("BLUE").content
    assert sheet.getpixel((red.x, red.y)) == (255, 0, 0, 255)
    assert sheet.getpixel((red.right - 1, red.bottom - 1)) == (255, 0, 0, 255)
    assert sheet.getpixel((blue.x, blue.y)) == (0, 0, 255, 255)
    assert sheet.getpixel((0, 0)) == (0, 0, 0, 0)


def test_render_sheet_draws_guidelines_outside_content() -> None:
    images = {"A": Image.new("RGBA", (8, 8), (1, 2, 3, 255))}
    result = pack([PackImage("A", 8, 8)])
    sheet = render_sheet(result, images, labels=False)

    item = result.items[0]
    inner = item.guidelines.inner
    outer = item.guidelines.outer
    assert sheet.getpixel((inner.x, inner.y))[3] == 255
    assert sheet.getpixel((outer.x, outer.y))[3] == 255
    assert sheet.getpixel((item.content.x, item.content.y)) == (1, 2, 3, 255)


def test_render_then_extract_returns_the_same_pixels() -> None:
    images = {
        "A": Image.new("RGBA", (5, 7), (10, 20, 30, 255)),
        "B": Image.new("RGBA", (9, 3), (40, 50, 60, 255)),
    }
    images["A"].putpixel((2, 3), (0, 0, 0, 0))
    result = pack([PackImage(name, image.width, image.height) for name, image in images.items()])
    sheet = render_sheet(result, images)

    extracted = extract_sprites(sheet, manifest_from_pack(result))

    assert set(extracted) == {"A", "B"}
    for name, image in images.items():
        assert extracted[name].tobytes() == image.tobytes()


def test_extract_from_scaled_sheet_resizes_back() -> None:
    images = {"A": Image.new("RGBA", (16, 16), (200, 100, 50, 255))}
    result = pack([PackImage("A", 16, 16)])
    manifest = manifest_from_pack(result)
    sheet = render_sheet(result, images, guidelines=False, labels=False)
    doubled = sheet.resize((sheet.width * 2, sheet.height * 2), Image.Resampling.NEAREST)

    extracted = extract_sprites(doubled, manifest)

    assert extracted["A"].size == (16, 16)
    assert extracted["A"].getpixel((8, 8)) == (200, 100, 50, 255)
