"""外部图像生成服务的接口约定。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from garment_recolor.core.config import GenerationRequest, RecolorSettings, TierConfig
from garment_recolor.core.models import ColorSpec, SourceImage


@dataclass(frozen=True, slots=True)
class GeneratedImage:
    """服务返回的编码图像。"""

    data: bytes
    mime_type: str = "image/png"


class ImageService(Protocol):
    """编排器依赖的外部服务。失败时抛出异常，异常消息即错误描述。"""

    def check_ready(self, tier: TierConfig) -> Optional[str]:
        """返回 None 表示可以开始；否则返回拒绝原因。"""

    async def recolor(
        self,
        image: SourceImage,
        color: ColorSpec,
        settings: RecolorSettings,
        tier: TierConfig,
    ) -> GeneratedImage:
        ...

    async def generate(self, request: GenerationRequest, tier: TierConfig) -> GeneratedImage:
        ...
