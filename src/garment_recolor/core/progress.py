"""进度更新的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    """批处理过程中的进度信息。"""

    total: int
    completed: int
    message: Optional[str] = None


@dataclass(frozen=True, slots=True)
class RetryEvent:
    """一次重试的诊断事件。"""

    attempt: int
    category: str
    delay_ms: int
    error: str
