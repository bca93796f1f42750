"""批处理任务队列的生成。"""

from __future__ import annotations

from typing import Sequence

from garment_recolor.core.models import ColorSpec, SourceImage, WorkItem


def generate_work_items(images: Sequence[SourceImage], colors: Sequence[ColorSpec]) -> list[WorkItem]:
    """按图片为外层、颜色为内层的顺序展开（图片 × 颜色）任务列表。"""

    return [WorkItem(source_image_id=image.id, color=color) for image in images for color in colors]
