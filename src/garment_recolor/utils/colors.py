"""颜色工具函数。"""

from __future__ import annotations

import re
from typing import Tuple

from garment_recolor.core.exceptions import InvalidConfigurationError

HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")


def normalize_hex(value: str) -> str:
    """将 HEX 字符串规范化为大写的 ``#RRGGBB`` 形式。"""

    if not value:
        raise InvalidConfigurationError("颜色值不能为空")

    match = HEX_COLOR_RE.match(value.strip())
    if not match:
        raise InvalidConfigurationError(f"无法解析颜色值: {value}")

    return "#" + match.group(1).upper()


def parse_hex_color(value: str) -> Tuple[int, int, int]:
    """将 HEX 字符串解析为 RGB 三元组。"""

    hex_value = normalize_hex(value)[1:]
    r = int(hex_value[0:2], 16)
    g = int(hex_value[2:4], 16)
    b = int(hex_value[4:6], 16)
    return r, g, b


def format_hex_color(r: int, g: int, b: int) -> str:
    """RGB 三元组格式化为大写 ``#RRGGBB``。"""

    return f"#{r:02X}{g:02X}{b:02X}"


def is_light_color(value: str) -> bool:
    """判断颜色是否偏亮，用于选择叠加文字的深浅。

    与取色放大镜一致：按 24 位整数值与中点比较。
    """

    r, g, b = parse_hex_color(value)
    return (r << 16 | g << 8 | b) > 0xFFFFFF // 2
