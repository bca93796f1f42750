"""图片加载与基础预处理实现。"""

from __future__ import annotations

import io
import logging
import uuid
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from garment_recolor.core.exceptions import RecolorError
from garment_recolor.core.models import SourceImage

LOGGER = logging.getLogger(__name__)


class ImageLoadingError(RecolorError):
    """图片加载失败。"""


def read_source_image(path: Path) -> SourceImage:
    """读取图片字节并校验其可被识别，返回带新 id 的 SourceImage。

    字节内容不做任何改动，原样交给外部服务。
    """

    try:
        data = path.read_bytes()
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError) as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", path, exc)
        raise ImageLoadingError(f"无法加载图像: {path}") from exc

    mime_type = Image.MIME.get(image_format or "", "image/jpeg")
    return SourceImage(
        id=uuid.uuid4().hex,
        data=data,
        name=path.name,
        mime_type=mime_type,
        source_path=path,
    )


def decode_image(data: bytes) -> Image.Image:
    """解码图片字节，执行 EXIF 旋转并统一为 RGB。

    Alpha 通道直接丢弃，不与背景混合，像素保留原始 RGB 值。

    返回值为新的 Image 对象，调用者负责关闭。
    """

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()

            # EXIF Orientation 校正
            img = ImageOps.exif_transpose(img)

            if img.mode != "RGB":
                img = img.convert("RGB")

            return img.copy()
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageLoadingError("无法解码图像数据") from exc


def load_image(path: Path) -> Image.Image:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ImageLoadingError(f"无法加载图像: {path}") from exc
    return decode_image(data)

