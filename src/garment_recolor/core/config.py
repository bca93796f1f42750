"""处理任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from garment_recolor.core.exceptions import InvalidConfigurationError
from garment_recolor.core.models import ColorSpec

SIZE_CLASSES = ("1K", "2K", "4K")


@dataclass(slots=True)
class RetryConfig:
    """外部调用的重试与退避配置，时间单位为毫秒。"""

    max_attempts: int = 8  # 首次调用之外的额外尝试次数
    base_delay_ms: int = 4000
    min_delay_ms: int = 2000
    jitter_ratio: float = 0.25
    rate_limit_factor: float = 2.5
    transient_factor: float = 2.0


@dataclass(frozen=True, slots=True)
class TierConfig:
    """外部生成服务的档位：模型与两次请求之间的固定间隔。"""

    name: str
    model: str
    inter_item_delay_ms: int
    requires_api_key: bool = True
    supports_image_size: bool = False


FAST_TIER = TierConfig(name="fast", model="gemini-2.5-flash-image", inter_item_delay_ms=1000)
PRO_TIER = TierConfig(
    name="pro",
    model="gemini-3-pro-image-preview",
    inter_item_delay_ms=4000,
    supports_image_size=True,
)

TIERS = {tier.name: tier for tier in (FAST_TIER, PRO_TIER)}


def resolve_tier(name: str) -> TierConfig:
    try:
        return TIERS[name.lower()]
    except KeyError:
        raise InvalidConfigurationError(f"未知的服务档位: {name}") from None


@dataclass(frozen=True, slots=True)
class RecolorSettings:
    """换色请求的参数集合，原样交给提示词构造。"""

    category: str = "TOP"
    fabric_type: str = "Cotton"
    fabric_awareness: bool = True
    print_protection: bool = False
    color_accuracy: bool = True
    edge_precision: bool = True


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """纯生成请求。"""

    prompt: str
    size_class: str = "1K"

    def __post_init__(self) -> None:
        if not self.prompt.strip():
            raise InvalidConfigurationError("生成提示词不能为空")
        if self.size_class not in SIZE_CLASSES:
            raise InvalidConfigurationError(f"未知的尺寸档位: {self.size_class}")


@dataclass(slots=True)
class OutputConfig:
    """输出目录与冲突策略配置。"""

    output_dir: Path
    conflict_strategy: str = "rename"  # overwrite | skip | rename


@dataclass(slots=True)
class JobConfig:
    """单次批处理任务的配置集合。"""

    sources: Sequence[Path]
    colors: Sequence[ColorSpec]
    output: OutputConfig
    settings: RecolorSettings = field(default_factory=RecolorSettings)
    tier: TierConfig = FAST_TIER
    retry: RetryConfig = field(default_factory=RetryConfig)
    allow_recursive: bool = True
    include_patterns: Sequence[str] = field(default_factory=lambda: ("*.jpg", "*.jpeg", "*.png", "*.webp"))
    exclude_patterns: Sequence[str] = field(default_factory=tuple)
    random_seed: Optional[int] = None
    report_filename: str = "report.csv"
