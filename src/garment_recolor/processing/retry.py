"""外部调用的失败分类与指数退避重试。"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from garment_recolor.core.config import RetryConfig
from garment_recolor.core.progress import RetryEvent

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

CATEGORY_RATE_LIMIT = "rate_limit"
CATEGORY_SERVER = "server"
CATEGORY_TRANSPORT = "transport"
CATEGORY_AUTH = "auth"
CATEGORY_FATAL = "fatal"

# 仅依据错误描述中的子串判断，外部服务没有结构化错误码可用。
RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED")
SERVER_MARKERS = ("500", "503")
TRANSPORT_MARKERS = ("fetch failed", "Failed to fetch", "network error", "NetworkError", "ECONNRESET")
AUTH_MARKERS = (
    "401",
    "403",
    "API key not valid",
    "API_KEY_INVALID",
    "PERMISSION_DENIED",
    "Requested entity was not found",
)

TRANSIENT_CATEGORIES = {CATEGORY_RATE_LIMIT, CATEGORY_SERVER, CATEGORY_TRANSPORT}

Operation = Callable[[], Awaitable[T]]
SleepFunc = Callable[[float], Awaitable[object]]
RetryCallback = Optional[Callable[[RetryEvent], None]]


def _contains_any(description: str, markers: tuple[str, ...]) -> bool:
    return any(marker in description for marker in markers)


def classify_failure(description: str) -> str:
    """将错误描述归类；限流优先于服务端错误与网络错误。"""

    if _contains_any(description, RATE_LIMIT_MARKERS):
        return CATEGORY_RATE_LIMIT
    if _contains_any(description, SERVER_MARKERS):
        return CATEGORY_SERVER
    if _contains_any(description, TRANSPORT_MARKERS):
        return CATEGORY_TRANSPORT
    if _contains_any(description, AUTH_MARKERS):
        return CATEGORY_AUTH
    return CATEGORY_FATAL


def is_transient(category: str) -> bool:
    return category in TRANSIENT_CATEGORIES


def base_delay_ms(attempt: int, category: str, config: RetryConfig) -> float:
    """第 attempt 次重试（从 1 开始）在抖动之前的退避时长。"""

    factor = config.rate_limit_factor if category == CATEGORY_RATE_LIMIT else config.transient_factor
    return config.base_delay_ms * factor ** (attempt - 1)


def compute_delay_ms(attempt: int, category: str, config: RetryConfig, rng: random.Random) -> int:
    """在基础退避上叠加对称抖动，并保证不低于下限。"""

    delay = base_delay_ms(attempt, category, config)
    jitter = delay * config.jitter_ratio * rng.uniform(-1.0, 1.0)
    return int(max(config.min_delay_ms, delay + jitter))


class RetryExecutor:
    """执行一次外部调用，对临时性失败按指数退避重试。

    致命错误立即抛出；重试次数耗尽后抛出最后一次的错误。
    每次重试都会记录日志并回调 ``on_retry``。
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
        on_retry: RetryCallback = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._on_retry = on_retry
        self.last_attempts = 0

    async def run(self, operation: Operation[T], *, label: str = "") -> T:
        attempt = 0
        while True:
            self.last_attempts = attempt + 1
            try:
                return await operation()
            except Exception as exc:  # noqa: BLE001
                description = str(exc)
                category = classify_failure(description)
                if not is_transient(category):
                    LOGGER.debug("不可重试的错误 %s (%s): %s", label, category, description)
                    raise
                attempt += 1
                if attempt > self.config.max_attempts:
                    LOGGER.error("重试次数耗尽 %s，共尝试 %d 次: %s", label, attempt, description)
                    raise

                delay_ms = compute_delay_ms(attempt, category, self.config, self._rng)
                LOGGER.warning(
                    "%s 第 %d 次重试 (%s)，等待 %.1fs: %s",
                    label or "调用",
                    attempt,
                    category,
                    delay_ms / 1000,
                    description,
                )
                if self._on_retry:
                    self._on_retry(RetryEvent(attempt=attempt, category=category, delay_ms=delay_ms, error=description))
                await self._sleep(delay_ms / 1000)
