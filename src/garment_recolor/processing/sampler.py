"""从图片中按显示坐标拾取像素颜色。"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from PIL import Image

from garment_recolor.core.exceptions import SamplingError
from garment_recolor.processing.image_loader import decode_image
from garment_recolor.utils.colors import format_hex_color


@dataclass(frozen=True, slots=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class Point:
    x: float
    y: float


class SamplingSurface:
    """原始分辨率的离屏像素副本，多次取色不会修改源图片。"""

    def __init__(self, image: Image.Image) -> None:
        rgb = image if image.mode == "RGB" else image.convert("RGB")
        self._pixels = np.array(rgb, dtype=np.uint8)
        self._pixels.setflags(write=False)

    @classmethod
    def from_bytes(cls, data: bytes) -> "SamplingSurface":
        image = decode_image(data)
        try:
            return cls(image)
        finally:
            image.close()

    @property
    def natural_size(self) -> Size:
        height, width = self._pixels.shape[:2]
        return Size(width=width, height=height)

    def pixel_hex(self, x: int, y: int) -> str:
        height, width = self._pixels.shape[:2]
        if not (0 <= x < width and 0 <= y < height):
            raise SamplingError(f"像素坐标越界: ({x}, {y})，图像尺寸 {width}x{height}")
        r, g, b = (int(channel) for channel in self._pixels[y, x, :3])
        return format_hex_color(r, g, b)

    def sample(self, display_size: Size, pointer: Point) -> str:
        return sample_color(self, display_size, self.natural_size, pointer)


def to_pixel_coordinates(display_size: Size, natural_size: Size, pointer: Point) -> tuple[int, int]:
    """显示坐标换算为原始像素坐标，X/Y 各自独立缩放后向下取整。"""

    if display_size.width <= 0 or display_size.height <= 0:
        raise SamplingError("显示区域尺寸必须大于 0")

    scale_x = natural_size.width / display_size.width
    scale_y = natural_size.height / display_size.height
    return math.floor(pointer.x * scale_x), math.floor(pointer.y * scale_y)


def sample_color(surface: SamplingSurface, display_size: Size, natural_size: Size, pointer: Point) -> str:
    """返回指针位置对应像素的 ``#RRGGBB`` 颜色。

    调用方只应传入显示区域内的坐标；越界坐标抛出 SamplingError。
    """

    x, y = to_pixel_coordinates(display_size, natural_size, pointer)
    return surface.pixel_hex(x, y)
