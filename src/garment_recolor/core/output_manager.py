"""输出写入与冲突处理模块。"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from itertools import count
from pathlib import Path
from typing import Optional

from garment_recolor.core.config import OutputConfig
from garment_recolor.core.exceptions import InvalidConfigurationError, RecolorError
from garment_recolor.core.models import ResultVariant

LOGGER = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}

CONFLICT_STRATEGIES = {"overwrite", "skip", "rename"}

_SLUG_RE = re.compile(r"[^0-9a-zA-Z]+")


class ImageWriteError(RecolorError):
    """输出写入失败。"""


@dataclass(slots=True)
class DestinationDecision:
    """封装输出文件决策。"""

    destination: Optional[Path]
    action: str
    note: Optional[str] = None


def slugify(value: str) -> str:
    slug = _SLUG_RE.sub("-", value).strip("-").lower()
    return slug or "variant"


def variant_filename(stem: str, variant: ResultVariant) -> str:
    """结果文件名：``<源文件名>_<颜色名>.<扩展名>``，纯生成结果使用 ``generated``。"""

    suffix = MIME_EXTENSIONS.get(variant.mime_type, ".png")
    tag = slugify(variant.color.name) if variant.color else "generated"
    return f"{stem}_{tag}{suffix}"


class OutputManager:
    """负责处理输出目录、冲突策略与结果写入。"""

    def __init__(self, config: OutputConfig) -> None:
        if config.conflict_strategy not in CONFLICT_STRATEGIES:
            raise InvalidConfigurationError(f"未知的冲突策略: {config.conflict_strategy}")
        self.config = config
        self.output_dir = config.output_dir.resolve()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def decide_destination(self, filename: str) -> DestinationDecision:
        """根据冲突策略确定输出路径。"""

        destination = self.output_dir / filename

        if not destination.exists():
            return DestinationDecision(destination=destination, action="write")

        strategy = self.config.conflict_strategy
        existing_msg = f"目标已存在: {destination.name}"

        if strategy == "overwrite":
            return DestinationDecision(destination=destination, action="overwrite", note=existing_msg)
        if strategy == "skip":
            return DestinationDecision(destination=destination, action="skip", note=existing_msg)

        new_destination = self._generate_renamed_path(destination)
        return DestinationDecision(
            destination=new_destination,
            action="rename",
            note=f"{existing_msg} -> 重命名为 {new_destination.name}",
        )

    def save_variant(self, stem: str, variant: ResultVariant) -> DestinationDecision:
        """写入一张结果图。图像字节不做转码，原样落盘。"""

        decision = self.decide_destination(variant_filename(stem, variant))
        if decision.action == "skip":
            LOGGER.info("跳过输出（已存在）：%s", decision.destination)
            return decision

        assert decision.destination is not None
        try:
            decision.destination.write_bytes(variant.output_image)
        except OSError as exc:
            raise ImageWriteError(f"写入文件失败: {decision.destination}") from exc
        return decision

    def _generate_renamed_path(self, destination: Path) -> Path:
        """在 rename 策略下生成新的文件名。"""

        stem = destination.stem
        suffix = destination.suffix

        for idx in count(1):
            candidate = destination.with_name(f"{stem}_{idx}{suffix}")
            if not candidate.exists():
                return candidate

        # 理论上不会执行到此处
        return destination
