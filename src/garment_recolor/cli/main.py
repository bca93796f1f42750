"""命令行入口。"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text

from garment_recolor.core.config import (
    SIZE_CLASSES,
    GenerationRequest,
    JobConfig,
    OutputConfig,
    RecolorSettings,
    RetryConfig,
    resolve_tier,
)
from garment_recolor.core.exceptions import BatchRejected, InvalidConfigurationError, RecolorError
from garment_recolor.core.models import ColorSpec
from garment_recolor.core.output_manager import OutputManager, slugify
from garment_recolor.core.presets import COLOR_PRESETS, PRODUCT_CATEGORIES, find_preset
from garment_recolor.core.progress import ProgressUpdate
from garment_recolor.processing.generation import generate_variant
from garment_recolor.processing.image_loader import ImageLoadingError, load_image
from garment_recolor.processing.pipeline import count_completed_images, process_batch
from garment_recolor.processing.retry import RetryExecutor
from garment_recolor.processing.sampler import Point, SamplingSurface, Size
from garment_recolor.services.gemini import GeminiImageService
from garment_recolor.utils.colors import is_light_color
from garment_recolor.utils.logging import setup_logging

app = typer.Typer(help="服装图片批量换色工具。")
console = Console()

API_KEY_ENVVARS = ["GEMINI_API_KEY", "API_KEY"]


def _parse_color(value: str) -> ColorSpec:
    """解析 ``名称=#RRGGBB`` 或单独的 HEX。"""

    name, sep, hex_value = value.partition("=")
    if not sep:
        hex_value, name = value, value
    try:
        return ColorSpec(name=name.strip() or hex_value.strip(), hex=hex_value)
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _collect_colors(colors: List[str], presets: List[str]) -> list[ColorSpec]:
    collected: list[ColorSpec] = []
    for name in presets:
        preset = find_preset(name)
        if preset is None:
            raise typer.BadParameter(f"未知的预设颜色: {name}")
        collected.append(preset)
    collected.extend(_parse_color(value) for value in colors)
    return collected


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task("换色处理", total=update.total)
        progress.update(task_id, completed=update.completed)
        if update.message:
            progress.log(update.message)

    return callback


@app.command("run")
def run_cli(  # noqa: PLR0913
    source: List[Path] = typer.Argument(..., help="源图片文件或目录，可指定多个"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    color: List[str] = typer.Option([], "--color", "-c", help="目标颜色，形如 Red=#FF0000，可重复"),
    preset: List[str] = typer.Option([], "--preset", "-p", help="预设颜色名称，可重复"),
    tier: str = typer.Option("fast", "--tier", help="服务档位 fast 或 pro"),
    category: str = typer.Option("TOP", "--category", help="商品类别"),
    fabric: str = typer.Option("Cotton", "--fabric", help="面料类型"),
    fabric_awareness: bool = typer.Option(True, "--fabric-awareness/--no-fabric-awareness", help="考虑面料吸色特性"),
    print_protection: bool = typer.Option(False, "--print-protection/--no-print-protection", help="保护印花与刺绣"),
    color_accuracy: bool = typer.Option(True, "--color-accuracy/--no-color-accuracy", help="真实染色效果"),
    edge_precision: bool = typer.Option(True, "--edge-precision/--no-edge-precision", help="精细边缘蒙版"),
    max_attempts: int = typer.Option(8, "--max-retries", help="临时性失败的最大重试次数"),
    allow_recursive: bool = typer.Option(True, "--recursive/--no-recursive", help="是否递归扫描目录"),
    conflict_strategy: str = typer.Option("rename", "--on-conflict", help="文件名冲突策略"),
    random_seed: Optional[int] = typer.Option(None, "--seed", help="退避抖动的随机种子"),
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar=API_KEY_ENVVARS, help="Gemini API Key"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """对每张图片 × 每种颜色执行换色。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)
    logging.getLogger(__name__).debug("CLI 参数解析完成")

    if category.upper() not in PRODUCT_CATEGORIES:
        raise typer.BadParameter(f"未知的商品类别: {category}")

    try:
        tier_config = resolve_tier(tier)
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    output_dir = output.expanduser().resolve()
    job = JobConfig(
        sources=[p.expanduser().resolve() for p in source],
        colors=_collect_colors(color, preset),
        output=OutputConfig(output_dir=output_dir, conflict_strategy=conflict_strategy),
        settings=RecolorSettings(
            category=category.upper(),
            fabric_type=fabric,
            fabric_awareness=fabric_awareness,
            print_protection=print_protection,
            color_accuracy=color_accuracy,
            edge_precision=edge_precision,
        ),
        tier=tier_config,
        retry=RetryConfig(max_attempts=max_attempts),
        allow_recursive=allow_recursive,
        random_seed=random_seed,
    )

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TimeElapsedColumn(),
        TimeRemainingColumn(),
    )

    try:
        with progress:
            result = process_batch(
                job,
                GeminiImageService(api_key),
                progress_callback=_build_progress_callback(progress),
            )
    except BatchRejected as exc:
        typer.echo(f"无法开始处理（{exc.reason}）：{exc}", err=True)
        raise typer.Exit(code=2) from exc
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    names = {outcome.image_id: outcome.source_name for outcome in result.outcomes}
    for update in result.images.values():
        if update.error_message:
            typer.echo(f"{names.get(update.image_id, update.image_id)}: {update.error_message}", err=True)

    typer.echo(
        f"处理完成：成功 {len(result.succeeded)} 个任务，失败 {len(result.failed)} 个任务，"
        f"{count_completed_images(result)}/{len(result.images)} 张图片有结果。"
    )
    typer.echo(f"报告文件：{output_dir / job.report_filename}")


@app.command("sample")
def sample_cli(
    image: Path = typer.Argument(..., help="参考图片"),
    x: float = typer.Option(..., "--x", help="指针在显示区域内的 X 坐标"),
    y: float = typer.Option(..., "--y", help="指针在显示区域内的 Y 坐标"),
    display_width: Optional[float] = typer.Option(None, "--display-width", help="显示宽度，默认等于原图宽度"),
    display_height: Optional[float] = typer.Option(None, "--display-height", help="显示高度，默认等于原图高度"),
) -> None:
    """从图片中拾取一个像素的颜色。"""

    try:
        loaded = load_image(image.expanduser())
    except ImageLoadingError as exc:
        raise typer.BadParameter(str(exc)) from exc

    with loaded:
        surface = SamplingSurface(loaded)

    natural = surface.natural_size
    display = Size(
        width=display_width if display_width is not None else natural.width,
        height=display_height if display_height is not None else natural.height,
    )
    try:
        hex_value = surface.sample(display, Point(x=x, y=y))
    except RecolorError as exc:
        raise typer.BadParameter(str(exc)) from exc

    text_color = "black" if is_light_color(hex_value) else "white"
    console.print(Text(f" {hex_value} ", style=f"bold {text_color} on {hex_value}"))


@app.command("generate")
def generate_cli(
    prompt: str = typer.Argument(..., help="生成提示词"),
    output: Path = typer.Option(..., "--output", "-o", help="输出目录"),
    size: str = typer.Option("1K", "--size", help=f"尺寸档位 {'/'.join(SIZE_CLASSES)}"),
    tier: str = typer.Option("pro", "--tier", help="服务档位 fast 或 pro"),
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar=API_KEY_ENVVARS, help="Gemini API Key"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """根据提示词直接生成一张图片。"""

    setup_logging(logging.DEBUG if verbose else logging.INFO)

    try:
        tier_config = resolve_tier(tier)
        request = GenerationRequest(prompt=prompt, size_class=size.upper())
    except InvalidConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    service = GeminiImageService(api_key)
    reason = service.check_ready(tier_config)
    if reason:
        typer.echo(f"无法开始生成：{reason}", err=True)
        raise typer.Exit(code=2)

    try:
        variant = asyncio.run(generate_variant(service, request, tier_config, RetryExecutor(RetryConfig())))
    except RecolorError as exc:
        typer.echo(f"生成失败：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    decision = OutputManager(OutputConfig(output_dir=output.expanduser().resolve())).save_variant(
        slugify(prompt)[:40], variant
    )
    typer.echo(f"已保存：{decision.destination}")


@app.command("presets")
def presets_cli() -> None:
    """列出内置的预设颜色与商品类别。"""

    table = Table(title="预设颜色")
    table.add_column("名称")
    table.add_column("HEX")
    for preset in COLOR_PRESETS:
        table.add_row(preset.name, Text(preset.hex, style=f"on {preset.hex}"))
    console.print(table)
    console.print("商品类别：" + ", ".join(PRODUCT_CATEGORIES))


if __name__ == "__main__":
    app()
