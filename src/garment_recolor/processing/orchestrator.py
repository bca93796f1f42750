"""批处理编排：逐个执行（图片 × 颜色）任务并维护每张图片的状态。"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from typing import Callable, Optional, Sequence

from garment_recolor.core.config import FAST_TIER, RecolorSettings, RetryConfig, TierConfig
from garment_recolor.core.exceptions import BatchRejected
from garment_recolor.core.models import (
    STATUS_COMPLETED,
    STATUS_ERROR,
    STATUS_PROCESSING,
    BatchResult,
    ColorSpec,
    ImageState,
    ImageUpdate,
    ItemOutcome,
    ResultVariant,
    SourceImage,
    WorkItem,
)
from garment_recolor.core.progress import ProgressUpdate
from garment_recolor.processing.retry import (
    CATEGORY_AUTH,
    CATEGORY_RATE_LIMIT,
    RetryCallback,
    RetryExecutor,
    SleepFunc,
    classify_failure,
)
from garment_recolor.processing.tasks import generate_work_items
from garment_recolor.services.base import ImageService

LOGGER = logging.getLogger(__name__)

REJECT_NO_IMAGES = "no-images"
REJECT_NO_COLORS = "no-colors"
REJECT_ALREADY_RUNNING = "already-running"
REJECT_PRECONDITION = "precondition"

AUTH_ERROR_MESSAGE = "API Key 无效或无权使用当前档位的模型，请检查凭据。"
RATE_LIMIT_ERROR_MESSAGE = "请求过于频繁或配额已用尽，多次退避重试后仍失败，请稍后再试。"
GENERIC_ERROR_MESSAGE = "处理失败，详情请查看日志。"

ImageUpdateCallback = Optional[Callable[[ImageUpdate], None]]
ProgressCallback = Optional[Callable[[ProgressUpdate], None]]


def failure_message(description: str) -> str:
    """按失败类别选择展示给用户的固定提示。"""

    category = classify_failure(description)
    if category == CATEGORY_AUTH:
        return AUTH_ERROR_MESSAGE
    if category == CATEGORY_RATE_LIMIT:
        return RATE_LIMIT_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE


class BatchOrchestrator:
    """同一时刻只运行一个批次，批次内任务严格串行。

    图片状态只由编排器修改；界面层通过回调收到只读快照。
    每个任务之后按档位固定等待一段时间，以免超出服务端的请求频率。
    """

    def __init__(
        self,
        service: ImageService,
        *,
        retry_config: Optional[RetryConfig] = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
        on_image_update: ImageUpdateCallback = None,
        on_progress: ProgressCallback = None,
        on_retry: RetryCallback = None,
    ) -> None:
        self._service = service
        self._retry_config = retry_config or RetryConfig()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._on_image_update = on_image_update
        self._on_progress = on_progress
        self._on_retry = on_retry
        self._states: dict[str, ImageState] = {}
        self._running = False
        self.progress = ProgressUpdate(total=0, completed=0)

    @property
    def is_running(self) -> bool:
        return self._running

    def state(self, image_id: str) -> Optional[ImageUpdate]:
        state = self._states.get(image_id)
        return state.snapshot() if state else None

    def select_result(self, image_id: str, index: int) -> ImageUpdate:
        """切换界面默认展示的结果。"""

        state = self._states[image_id]
        if not 0 <= index < len(state.results):
            raise IndexError(f"结果下标越界: {index}")
        state.active_result_index = index
        snapshot = state.snapshot()
        self._emit_image(snapshot)
        return snapshot

    def discard_image(self, image_id: str) -> None:
        """图片被移出工作区时丢弃其状态与全部结果。"""

        if self._running:
            raise BatchRejected(REJECT_ALREADY_RUNNING, "批处理进行中，无法移除图片")
        self._states.pop(image_id, None)

    def check_start(
        self,
        images: Sequence[SourceImage],
        colors: Sequence[ColorSpec],
        tier: TierConfig,
    ) -> None:
        """启动前检查，不满足条件时抛出带原因的 BatchRejected，不修改任何状态。"""

        if self._running:
            raise BatchRejected(REJECT_ALREADY_RUNNING, "已有批处理正在运行")
        if not images:
            raise BatchRejected(REJECT_NO_IMAGES, "请先添加至少一张图片")
        if not colors:
            raise BatchRejected(REJECT_NO_COLORS, "请至少选择一种目标颜色")
        reason = self._service.check_ready(tier)
        if reason:
            raise BatchRejected(REJECT_PRECONDITION, reason)

    async def run(
        self,
        images: Sequence[SourceImage],
        colors: Sequence[ColorSpec],
        settings: Optional[RecolorSettings] = None,
        tier: TierConfig = FAST_TIER,
    ) -> BatchResult:
        self.check_start(images, colors, tier)
        self._running = True
        try:
            return await self._run(tuple(images), tuple(colors), settings or RecolorSettings(), tier)
        finally:
            self._running = False

    async def _run(
        self,
        images: tuple[SourceImage, ...],
        colors: tuple[ColorSpec, ...],
        settings: RecolorSettings,
        tier: TierConfig,
    ) -> BatchResult:
        by_id = {image.id: image for image in images}
        queue = deque(generate_work_items(images, colors))
        total = len(queue)
        LOGGER.info("开始批处理：%d 张图片 × %d 种颜色，共 %d 个任务（档位 %s）", len(by_id), len(colors), total, tier.name)

        for image_id in by_id:
            state = self._states.setdefault(image_id, ImageState(image_id=image_id))
            state.status = STATUS_PROCESSING
            state.error_message = None
            self._emit_image(state.snapshot())

        completed = 0
        self._emit_progress(ProgressUpdate(total=total, completed=completed, message="开始执行处理任务"))

        executor = RetryExecutor(self._retry_config, sleep=self._sleep, rng=self._rng, on_retry=self._on_retry)
        result = BatchResult()

        while queue:
            item = queue.popleft()
            image = by_id[item.source_image_id]
            outcome = await self._process_item(executor, image, item, settings, tier)
            result.outcomes.append(outcome)

            completed += 1
            self._emit_progress(
                ProgressUpdate(total=total, completed=completed, message=f"完成 {_label(image, item.color)}")
            )

            if queue and tier.inter_item_delay_ms > 0:
                await self._sleep(tier.inter_item_delay_ms / 1000)

        result.images = {image_id: self._states[image_id].snapshot() for image_id in by_id}
        LOGGER.info("批处理结束：成功 %d 个，失败 %d 个", len(result.succeeded), len(result.failed))
        return result

    async def _process_item(
        self,
        executor: RetryExecutor,
        image: SourceImage,
        item: WorkItem,
        settings: RecolorSettings,
        tier: TierConfig,
    ) -> ItemOutcome:
        state = self._states[image.id]
        label = _label(image, item.color)

        try:
            generated = await executor.run(
                lambda: self._service.recolor(image, item.color, settings, tier),
                label=label,
            )
        except Exception as exc:  # noqa: BLE001
            description = str(exc)
            LOGGER.error("任务失败 %s: %s", label, description)
            if state.results:
                # 该图片已有成功结果，单个颜色的失败不在图片上展示。
                state.status = STATUS_COMPLETED
            else:
                state.status = STATUS_ERROR
                state.error_message = failure_message(description)
            self._emit_image(state.snapshot())
            return ItemOutcome(
                image_id=image.id,
                source_name=image.name,
                color=item.color,
                status=STATUS_ERROR,
                attempts=executor.last_attempts,
                message=description,
            )

        variant = ResultVariant(output_image=generated.data, color=item.color, mime_type=generated.mime_type)
        state.active_result_index = state.upsert_result(variant)
        state.status = STATUS_COMPLETED
        state.error_message = None
        self._emit_image(state.snapshot())
        LOGGER.debug("任务完成 %s（尝试 %d 次）", label, executor.last_attempts)
        return ItemOutcome(
            image_id=image.id,
            source_name=image.name,
            color=item.color,
            status=STATUS_COMPLETED,
            attempts=executor.last_attempts,
            variant=variant,
        )

    def _emit_image(self, update: ImageUpdate) -> None:
        if self._on_image_update:
            self._on_image_update(update)

    def _emit_progress(self, update: ProgressUpdate) -> None:
        self.progress = update
        if self._on_progress:
            self._on_progress(update)


def _label(image: SourceImage, color: ColorSpec) -> str:
    return f"{image.name or image.id} / {color.name}"
