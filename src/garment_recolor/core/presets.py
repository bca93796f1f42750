"""内置的商品类别与颜色预设。"""

from __future__ import annotations

from typing import Optional

from garment_recolor.core.models import ColorSpec

PRODUCT_CATEGORIES = (
    "TOP",
    "DRESS",
    "TROUSER",
    "KURTI",
    "T-SHIRT",
    "SHIRT",
    "SKIRT",
    "JACKET",
    "OTHER",
)

COLOR_PRESETS = (
    ColorSpec("Deep Wine Maroon", "#6A1F2B"),
    ColorSpec("Rust Orange", "#B7410E"),
    ColorSpec("Sage Green", "#9CAF88"),
    ColorSpec("Mocha Brown", "#6F4E37"),
    ColorSpec("Classic Blue", "#0F4C81"),
    ColorSpec("Emerald", "#009B77"),
    ColorSpec("Charcoal", "#36454F"),
    ColorSpec("Soft Pink", "#FFD1DC"),
)


def find_preset(name: str) -> Optional[ColorSpec]:
    """按名称（忽略大小写）查找预设颜色。"""

    lowered = name.strip().lower()
    for preset in COLOR_PRESETS:
        if preset.name.lower() == lowered:
            return preset
    return None
