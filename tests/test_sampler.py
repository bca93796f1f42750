"""取色器：坐标换算与像素读取。"""

from __future__ import annotations

import io

import pytest
from PIL import Image

from garment_recolor.core.exceptions import SamplingError
from garment_recolor.processing.sampler import (
    Point,
    SamplingSurface,
    Size,
    sample_color,
    to_pixel_coordinates,
)
from garment_recolor.utils.colors import is_light_color


def _make_marked_image(size: tuple[int, int], marks: dict[tuple[int, int], tuple[int, int, int]]) -> Image.Image:
    image = Image.new("RGB", size, (255, 255, 255))
    for position, color in marks.items():
        image.putpixel(position, color)
    return image


def test_half_size_display_maps_to_double_coordinates() -> None:
    image = _make_marked_image((200, 200), {(100, 100): (255, 0, 0)})
    surface = SamplingSurface(image)

    hex_value = sample_color(surface, Size(100, 100), Size(200, 200), Point(50, 50))

    assert hex_value == "#FF0000"


def test_sampling_is_repeatable_and_leaves_image_unchanged() -> None:
    image = _make_marked_image((40, 40), {(10, 20): (18, 52, 86)})
    before = list(image.getdata())
    surface = SamplingSurface(image)

    first = surface.sample(Size(40, 40), Point(10, 20))
    second = surface.sample(Size(40, 40), Point(10, 20))

    assert first == second == "#123456"
    assert list(image.getdata()) == before


def test_axes_scale_independently() -> None:
    image = _make_marked_image((200, 100), {(20, 60): (0, 0, 255)})
    surface = SamplingSurface(image)

    assert to_pixel_coordinates(Size(100, 100), Size(200, 100), Point(10, 60)) == (20, 60)
    assert surface.sample(Size(100, 100), Point(10, 60)) == "#0000FF"


def test_coordinates_are_floored() -> None:
    assert to_pixel_coordinates(Size(100, 100), Size(200, 200), Point(50.9, 50.9)) == (101, 101)
    assert to_pixel_coordinates(Size(300, 300), Size(100, 100), Point(299.9, 0.5)) == (99, 0)


def test_hex_is_uppercase_with_padding() -> None:
    image = _make_marked_image((4, 4), {(1, 1): (171, 205, 239), (2, 2): (0, 10, 1)})
    surface = SamplingSurface(image)

    assert surface.pixel_hex(1, 1) == "#ABCDEF"
    assert surface.pixel_hex(2, 2) == "#000A01"


def test_rgba_surface_reads_rgb_channels() -> None:
    image = Image.new("RGBA", (10, 10), (10, 20, 30, 128))
    surface = SamplingSurface(image)

    assert surface.pixel_hex(5, 5) == "#0A141E"


def test_surface_from_encoded_bytes() -> None:
    image = _make_marked_image((30, 30), {(3, 4): (1, 2, 3)})
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")

    surface = SamplingSurface.from_bytes(buffer.getvalue())

    assert surface.natural_size == Size(30, 30)
    assert surface.sample(Size(60, 60), Point(6, 8)) == "#010203"


def test_out_of_range_pointer_raises() -> None:
    surface = SamplingSurface(Image.new("RGB", (10, 10)))

    with pytest.raises(SamplingError):
        surface.sample(Size(10, 10), Point(10, 0))
    with pytest.raises(SamplingError):
        surface.sample(Size(10, 10), Point(-1, 0))


def test_zero_display_size_raises() -> None:
    surface = SamplingSurface(Image.new("RGB", (10, 10)))

    with pytest.raises(SamplingError):
        surface.sample(Size(0, 10), Point(0, 0))


def test_light_color_detection() -> None:
    assert is_light_color("#FFD1DC")
    assert is_light_color("ffffff")
    assert not is_light_color("#36454F")
    assert not is_light_color("#000000")


def test_encoded_semi_transparent_pixel_keeps_rgb() -> None:
    image = Image.new("RGBA", (10, 10), (255, 0, 0, 128))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")

    from_bytes = SamplingSurface.from_bytes(buffer.getvalue()).sample(Size(10, 10), Point(5, 5))
    direct = SamplingSurface(image).sample(Size(10, 10), Point(5, 5))

    assert from_bytes == direct == "#FF0000"
