"""日志配置。"""

from __future__ import annotations

import logging


def setup_logging(level: int = logging.INFO) -> None:
    """初始化项目日志配置。"""

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # google-genai 底层 HTTP 客户端在 INFO 级别会逐条打印请求。
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
