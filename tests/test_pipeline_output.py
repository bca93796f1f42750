"""流水线：扫描、换色结果写出、冲突策略与报告。"""

from __future__ import annotations

import asyncio
import csv
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from garment_recolor.core.config import JobConfig, OutputConfig, RecolorSettings, TierConfig
from garment_recolor.core.exceptions import BatchRejected, InvalidConfigurationError, ServiceError
from garment_recolor.core.models import STATUS_COMPLETED, STATUS_ERROR, ColorSpec, ResultVariant, SourceImage
from garment_recolor.core.output_manager import OutputManager, variant_filename
from garment_recolor.processing.image_loader import ImageLoadingError, read_source_image
from garment_recolor.processing.orchestrator import REJECT_NO_IMAGES
from garment_recolor.processing.pipeline import process_batch, run_job
from garment_recolor.services.base import GeneratedImage

INSTANT_TIER = TierConfig(name="test", model="fake-model", inter_item_delay_ms=0, requires_api_key=False)

RED = ColorSpec("Red", "#FF0000")
NAVY = ColorSpec("Navy Blue", "#000080")


class EchoService:
    """把颜色写进结果字节的假服务。"""

    def __init__(self, failures: Optional[dict[str, str]] = None) -> None:
        self.failures = failures or {}
        self.seen: list[tuple[str, str, str]] = []

    def check_ready(self, tier: TierConfig) -> Optional[str]:
        return None

    async def recolor(
        self,
        image: SourceImage,
        color: ColorSpec,
        settings: RecolorSettings,
        tier: TierConfig,
    ) -> GeneratedImage:
        self.seen.append((image.name, image.mime_type, color.hex))
        if color.hex in self.failures:
            raise ServiceError(self.failures[color.hex])
        return GeneratedImage(data=color.hex.encode(), mime_type="image/png")

    async def generate(self, request, tier):  # pragma: no cover - 流水线不使用
        raise NotImplementedError


async def _no_sleep(seconds: float) -> None:
    return None


def make_config(source: Path, output: Path, colors=(RED, NAVY), *, conflict_strategy: str = "rename") -> JobConfig:
    return JobConfig(
        sources=[source],
        colors=list(colors),
        output=OutputConfig(output_dir=output, conflict_strategy=conflict_strategy),
        tier=INSTANT_TIER,
    )


def _prepare_sources(source: Path) -> None:
    source.mkdir()
    Image.new("RGB", (32, 32), "white").save(source / "shirt.png")
    Image.new("RGB", (32, 32), "gray").save(source / "dress.jpg")
    (source / "corrupted.png").write_text("not an image")
    (source / "notes.txt").write_text("hello")


def test_run_job_writes_variants_and_report(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    _prepare_sources(source)
    service = EchoService()

    result = asyncio.run(run_job(make_config(source, output), service, sleep=_no_sleep))

    assert [(name, hex_value) for name, _, hex_value in service.seen] == [
        ("dress.jpg", RED.hex),
        ("dress.jpg", NAVY.hex),
        ("shirt.png", RED.hex),
        ("shirt.png", NAVY.hex),
    ]
    assert {mime for _, mime, _ in service.seen} == {"image/jpeg", "image/png"}

    assert len(result.succeeded) == 4
    assert (output / "shirt_red.png").read_bytes() == b"#FF0000"
    assert (output / "shirt_navy-blue.png").read_bytes() == b"#000080"
    assert (output / "dress_red.png").exists()
    assert all(outcome.output_path is not None for outcome in result.succeeded)

    with (output / "report.csv").open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 4
    assert rows[0]["source_name"] == "dress.jpg"
    assert rows[0]["color_hex"] == "#FF0000"
    assert rows[0]["status"] == STATUS_COMPLETED


def test_failed_items_are_reported_but_not_written(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    source.mkdir()
    Image.new("RGB", (16, 16), "white").save(source / "top.png")
    service = EchoService(failures={NAVY.hex: "400 INVALID_ARGUMENT"})

    result = asyncio.run(run_job(make_config(source, output), service, sleep=_no_sleep))

    assert (output / "top_red.png").exists()
    assert not (output / "top_navy-blue.png").exists()
    image_state = next(iter(result.images.values()))
    assert image_state.status == STATUS_COMPLETED

    with (output / "report.csv").open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["status"] for row in rows] == [STATUS_COMPLETED, STATUS_ERROR]
    assert rows[1]["message"] == "400 INVALID_ARGUMENT"


def test_conflict_rename_strategy(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    source.mkdir()
    output.mkdir()
    Image.new("RGB", (16, 16), "white").save(source / "dup.png")
    (output / "dup_red.png").write_bytes(b"old")

    result = asyncio.run(run_job(make_config(source, output, colors=[RED]), EchoService(), sleep=_no_sleep))

    renamed = result.succeeded[0].output_path
    assert renamed is not None and renamed.name == "dup_red_1.png"
    assert (output / "dup_red.png").read_bytes() == b"old"


def test_conflict_skip_strategy(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    source.mkdir()
    output.mkdir()
    Image.new("RGB", (16, 16), "white").save(source / "dup.png")
    (output / "dup_red.png").write_bytes(b"old")

    config = make_config(source, output, colors=[RED], conflict_strategy="skip")
    result = asyncio.run(run_job(config, EchoService(), sleep=_no_sleep))

    assert (output / "dup_red.png").read_bytes() == b"old"
    assert result.succeeded[0].message is not None and "目标已存在" in result.succeeded[0].message


def test_no_images_is_rejected_before_output(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    source.mkdir()
    (source / "notes.txt").write_text("hello")

    with pytest.raises(BatchRejected) as excinfo:
        asyncio.run(run_job(make_config(source, output), EchoService(), sleep=_no_sleep))

    assert excinfo.value.reason == REJECT_NO_IMAGES
    assert not output.exists()


def test_process_batch_sync_entry(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    source.mkdir()
    Image.new("RGB", (16, 16), "white").save(source / "tee.png")

    result = process_batch(make_config(source, output, colors=[RED]), EchoService())

    assert len(result.succeeded) == 1
    assert (output / "tee_red.png").exists()


def test_unknown_conflict_strategy_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigurationError):
        OutputManager(OutputConfig(output_dir=tmp_path, conflict_strategy="merge"))


def test_variant_filename() -> None:
    assert variant_filename("shirt", ResultVariant(b"", color=ColorSpec("Deep Wine Maroon", "#6A1F2B"))) == (
        "shirt_deep-wine-maroon.png"
    )
    assert variant_filename("shirt", ResultVariant(b"", color=RED, mime_type="image/jpeg")) == "shirt_red.jpg"
    assert variant_filename("prompt", ResultVariant(b"", size_class="2K")) == "prompt_generated.png"


def test_read_source_image_keeps_bytes(tmp_path: Path) -> None:
    path = tmp_path / "photo.jpg"
    Image.new("RGB", (8, 8), "red").save(path)

    image = read_source_image(path)

    assert image.data == path.read_bytes()
    assert image.mime_type == "image/jpeg"
    assert image.name == "photo.jpg"
    assert image.stem == "photo"


def test_read_source_image_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "broken.png"
    path.write_text("not an image")

    with pytest.raises(ImageLoadingError):
        read_source_image(path)


def test_duplicate_hex_colors_write_separate_files(tmp_path: Path) -> None:
    source = tmp_path / "input"
    output = tmp_path / "output"
    source.mkdir()
    Image.new("RGB", (16, 16), "white").save(source / "tee.png")
    crimson = ColorSpec("Crimson", "#ff0000")

    result = asyncio.run(run_job(make_config(source, output, colors=[RED, crimson]), EchoService(), sleep=_no_sleep))

    names = {outcome.color.name: outcome.output_path.name for outcome in result.succeeded if outcome.output_path}
    assert names == {"Red": "tee_red.png", "Crimson": "tee_crimson.png"}
    assert (output / "tee_red.png").read_bytes() == (output / "tee_crimson.png").read_bytes() == b"#FF0000"
    assert sorted(p.name for p in output.iterdir()) == ["report.csv", "tee_crimson.png", "tee_red.png"]
    assert [variant.color.name for variant in next(iter(result.images.values())).results] == ["Crimson"]

    with (output / "report.csv").open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert [(row["color_name"], Path(row["output_path"]).name) for row in rows] == [
        ("Red", "tee_red.png"),
        ("Crimson", "tee_crimson.png"),
    ]
