"""处理流水线：扫描源图片、串行换色、写出结果与报告。"""

from __future__ import annotations

import asyncio
import logging
import random

from garment_recolor.core.config import JobConfig
from garment_recolor.core.models import STATUS_COMPLETED, BatchResult, SourceImage
from garment_recolor.core.output_manager import ImageWriteError, OutputManager
from garment_recolor.core.report import write_csv_report
from garment_recolor.core.scanner import collect_source_paths
from garment_recolor.processing.image_loader import ImageLoadingError, read_source_image
from garment_recolor.processing.orchestrator import (
    BatchOrchestrator,
    ImageUpdateCallback,
    ProgressCallback,
)
from garment_recolor.processing.retry import RetryCallback, SleepFunc
from garment_recolor.services.base import ImageService

LOGGER = logging.getLogger(__name__)


def load_sources(config: JobConfig) -> list[SourceImage]:
    """扫描并读取源图片，无法识别的文件记录日志后跳过。"""

    LOGGER.info("开始扫描输入路径")
    images: list[SourceImage] = []
    for path in collect_source_paths(config):
        try:
            images.append(read_source_image(path))
        except ImageLoadingError as exc:
            LOGGER.warning("跳过无法识别的文件：%s", exc)
    LOGGER.info("发现 %d 张可处理图片", len(images))
    return images


async def run_job(
    config: JobConfig,
    service: ImageService,
    *,
    progress_callback: ProgressCallback = None,
    image_callback: ImageUpdateCallback = None,
    retry_callback: RetryCallback = None,
    sleep: SleepFunc = asyncio.sleep,
) -> BatchResult:
    """执行一次完整任务，成功结果写入输出目录，返回批处理结果。"""

    images = load_sources(config)
    orchestrator = BatchOrchestrator(
        service,
        retry_config=config.retry,
        sleep=sleep,
        rng=random.Random(config.random_seed),
        on_image_update=image_callback,
        on_progress=progress_callback,
        on_retry=retry_callback,
    )
    # 启动检查失败时直接抛出，尚未创建输出目录。
    orchestrator.check_start(images, config.colors, config.tier)

    output_manager = OutputManager(config.output)
    result = await orchestrator.run(images, config.colors, config.settings, config.tier)

    by_id = {image.id: image for image in images}
    for outcome in result.succeeded:
        # 写出每个任务自己生成的结果，而不是图片上按颜色保留的最新结果。
        assert outcome.variant is not None
        try:
            decision = output_manager.save_variant(by_id[outcome.image_id].stem, outcome.variant)
        except ImageWriteError as exc:
            LOGGER.error("%s", exc)
            outcome.message = str(exc)
            continue
        outcome.output_path = decision.destination
        outcome.message = decision.note

    _write_report(config, output_manager, result)
    return result


def process_batch(config: JobConfig, service: ImageService, *, progress_callback: ProgressCallback = None) -> BatchResult:
    """同步入口，供命令行调用。"""

    return asyncio.run(run_job(config, service, progress_callback=progress_callback))


def count_completed_images(result: BatchResult) -> int:
    return sum(1 for update in result.images.values() if update.status == STATUS_COMPLETED)


def _write_report(config: JobConfig, output_manager: OutputManager, result: BatchResult) -> None:
    try:
        write_csv_report(result.outcomes, output_manager.output_dir, config.report_filename)
    except OSError as exc:
        LOGGER.error("写入报告失败：%s", exc)
