"""文件扫描与筛选逻辑。"""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import Iterator, Sequence

from garment_recolor.core.config import JobConfig

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}


def _iter_candidate_files(path: Path, recursive: bool) -> Iterator[Path]:
    """遍历路径下的所有文件。"""

    if path.is_file():
        yield path
        return

    if not path.is_dir():
        return

    iterator = path.rglob("*") if recursive else path.glob("*")
    for candidate in iterator:
        if candidate.is_file():
            yield candidate


def _matches_any(name: str, patterns: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(fnmatch(lowered, pattern.lower()) for pattern in patterns)


def collect_source_paths(config: JobConfig) -> list[Path]:
    """根据配置扫描输入路径，返回匹配的图片文件（按路径排序）。"""

    collected: list[Path] = []
    seen_paths: set[Path] = set()

    include_patterns = config.include_patterns or ("*.jpg", "*.jpeg", "*.png", "*.webp")
    exclude_patterns = config.exclude_patterns or ()

    for root in config.sources:
        for candidate in _iter_candidate_files(root.resolve(), config.allow_recursive):
            if candidate in seen_paths:
                continue
            seen_paths.add(candidate)

            name = candidate.name
            if not _matches_any(name, include_patterns):
                continue
            if exclude_patterns and _matches_any(name, exclude_patterns):
                continue
            if candidate.suffix.lower() not in IMAGE_EXTENSIONS:
                continue

            collected.append(candidate)

    collected.sort(key=lambda x: str(x).lower())
    return collected
