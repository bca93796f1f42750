"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from garment_recolor.utils.colors import normalize_hex

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"


@dataclass(frozen=True, slots=True)
class ColorSpec:
    """目标颜色。hex 在构造时规范化为 ``#RRGGBB``。"""

    name: str
    hex: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "hex", normalize_hex(self.hex))

    def same_color(self, other: "ColorSpec") -> bool:
        return self.hex == other.hex


@dataclass(frozen=True, slots=True)
class SourceImage:
    """用户提供的源图片，字节内容原样透传给外部服务。"""

    id: str
    data: bytes
    name: str = ""
    mime_type: str = "image/jpeg"
    source_path: Optional[Path] = None

    @property
    def stem(self) -> str:
        if self.source_path is not None:
            return self.source_path.stem
        return Path(self.name).stem if self.name else self.id


@dataclass(frozen=True, slots=True)
class WorkItem:
    """一次批处理中的单个（图片, 颜色）任务。"""

    source_image_id: str
    color: ColorSpec


@dataclass(frozen=True, slots=True)
class ResultVariant:
    """外部服务返回的一张结果图。纯生成结果没有 color。"""

    output_image: bytes
    color: Optional[ColorSpec] = None
    mime_type: str = "image/png"
    source_prompt: Optional[str] = None
    size_class: Optional[str] = None


@dataclass(slots=True)
class ImageState:
    """由编排器维护的单张图片处理状态。"""

    image_id: str
    status: str = STATUS_PENDING
    results: list[ResultVariant] = field(default_factory=list)
    error_message: Optional[str] = None
    active_result_index: Optional[int] = None

    def upsert_result(self, variant: ResultVariant) -> int:
        """写入结果；同色已存在时替换并移到末尾。返回新结果的下标。"""

        kept = [
            existing
            for existing in self.results
            if existing.color is None or variant.color is None or not existing.color.same_color(variant.color)
        ]
        kept.append(variant)
        self.results = kept
        return len(kept) - 1

    def snapshot(self) -> "ImageUpdate":
        return ImageUpdate(
            image_id=self.image_id,
            status=self.status,
            results=tuple(self.results),
            active_result_index=self.active_result_index,
            error_message=self.error_message,
        )


@dataclass(frozen=True, slots=True)
class ImageUpdate:
    """推送给界面层的只读状态快照。"""

    image_id: str
    status: str
    results: tuple[ResultVariant, ...]
    active_result_index: Optional[int]
    error_message: Optional[str]

    @property
    def active_result(self) -> Optional[ResultVariant]:
        if self.active_result_index is None:
            return None
        return self.results[self.active_result_index]


@dataclass(slots=True)
class ItemOutcome:
    """记录单个任务的处理结果（用于报告/日志）。"""

    image_id: str
    source_name: str
    color: ColorSpec
    status: str
    attempts: int = 1
    output_path: Optional[Path] = None
    message: Optional[str] = None
    variant: Optional[ResultVariant] = None


@dataclass(slots=True)
class BatchResult:
    """一次批处理运行的产出，outcomes 按完成顺序排列。"""

    outcomes: list[ItemOutcome] = field(default_factory=list)
    images: dict[str, ImageUpdate] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == STATUS_COMPLETED]

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status != STATUS_COMPLETED]
