"""纯生成请求：不依赖源图片，直接由提示词得到一张结果图。"""

from __future__ import annotations

import logging

from garment_recolor.core.config import GenerationRequest, TierConfig
from garment_recolor.core.models import ResultVariant
from garment_recolor.processing.retry import RetryExecutor
from garment_recolor.services.base import ImageService

LOGGER = logging.getLogger(__name__)


async def generate_variant(
    service: ImageService,
    request: GenerationRequest,
    tier: TierConfig,
    executor: RetryExecutor,
) -> ResultVariant:
    """经重试执行器调用生成服务，返回不带颜色的结果。"""

    LOGGER.info("开始生成图片（档位 %s，尺寸 %s）", tier.name, request.size_class)
    generated = await executor.run(lambda: service.generate(request, tier), label="generate")
    return ResultVariant(
        output_image=generated.data,
        mime_type=generated.mime_type,
        source_prompt=request.prompt,
        size_class=request.size_class,
    )
