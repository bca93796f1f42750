"""基于 google-genai 的换色与生成服务。"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors, types

from garment_recolor.core.config import GenerationRequest, RecolorSettings, TierConfig
from garment_recolor.core.exceptions import ServiceError
from garment_recolor.core.models import ColorSpec, SourceImage
from garment_recolor.services.base import GeneratedImage
from garment_recolor.services.prompts import build_recolor_prompt

LOGGER = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = "No image data returned from Gemini."


class GeminiImageService:
    """调用 Gemini 图像模型。

    所有失败都转换为 ServiceError，消息中保留服务端的状态码与状态名，
    重试与错误提示只依赖这段文字。
    """

    def __init__(self, api_key: Optional[str], *, client: Optional[Any] = None) -> None:
        self.api_key = api_key
        self._client = client

    def check_ready(self, tier: TierConfig) -> Optional[str]:
        if tier.requires_api_key and not self.api_key:
            return f"未配置 API Key，无法使用 {tier.name} 档位（请设置 GEMINI_API_KEY）"
        return None

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def recolor(
        self,
        image: SourceImage,
        color: ColorSpec,
        settings: RecolorSettings,
        tier: TierConfig,
    ) -> GeneratedImage:
        contents = [
            types.Part.from_bytes(data=image.data, mime_type=image.mime_type),
            types.Part.from_text(text=build_recolor_prompt(settings, color)),
        ]
        config = types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"])
        return await self._generate(tier, contents, config)

    async def generate(self, request: GenerationRequest, tier: TierConfig) -> GeneratedImage:
        image_config = types.ImageConfig(image_size=request.size_class) if tier.supports_image_size else None
        config = types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"], image_config=image_config)
        return await self._generate(tier, [types.Part.from_text(text=request.prompt)], config)

    async def _generate(self, tier: TierConfig, contents: list, config: types.GenerateContentConfig) -> GeneratedImage:
        try:
            response = await self.client.aio.models.generate_content(
                model=tier.model,
                contents=contents,
                config=config,
            )
        except errors.APIError as exc:
            LOGGER.debug("Gemini API 错误: %s", exc)
            raise ServiceError(str(exc)) from exc
        except httpx.TransportError as exc:
            raise ServiceError(f"network error: {exc!r}") from exc

        return extract_image(response)


def extract_image(response: Any) -> GeneratedImage:
    """取出响应中的第一张内联图片。"""

    candidates = getattr(response, "candidates", None) or []
    if candidates:
        content = candidates[0].content
        for part in (content.parts if content and content.parts else []):
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                return GeneratedImage(data=inline.data, mime_type=inline.mime_type or "image/png")

    raise ServiceError(NO_IMAGE_MESSAGE)
