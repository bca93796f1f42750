"""报告生成工具。"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable

from garment_recolor.core.models import ItemOutcome

HEADER = ["source_name", "color_name", "color_hex", "status", "attempts", "output_path", "message"]


def write_csv_report(outcomes: Iterable[ItemOutcome], output_dir: Path, filename: str) -> Path:
    """将每个任务的处理结果写入 CSV 报告。"""

    report_path = output_dir / filename
    with report_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(HEADER)
        for record in outcomes:
            writer.writerow(
                [
                    record.source_name,
                    record.color.name,
                    record.color.hex,
                    record.status,
                    record.attempts,
                    str(record.output_path) if record.output_path else "",
                    record.message or "",
                ]
            )
    return report_path
