"""换色请求的提示词构造。"""

from __future__ import annotations

from garment_recolor.core.config import RecolorSettings
from garment_recolor.core.models import ColorSpec


def build_recolor_prompt(settings: RecolorSettings, color: ColorSpec) -> str:
    category = settings.category
    rules = [
        f"Modify ONLY the {category} region.",
        "Do NOT alter background, model skin, hair, accessories.",
        "Preserve original fabric texture, stitching, seams, folds, and lighting.",
        "PROTECT printed graphics, embroidery, logos."
        if settings.print_protection
        else "Recolor everything on the garment.",
        "Ensure realistic textile dye accuracy (avoid over-saturation)."
        if settings.color_accuracy
        else "Match color exactly.",
        "Use pixel-perfect masking." if settings.edge_precision else "Standard edges.",
    ]
    if settings.fabric_awareness:
        rules.append(f"Account for how {settings.fabric_type} absorbs dye and reflects light.")

    lines = [
        "ACT AS A PROFESSIONAL FASHION IMAGE RECOLORING ENGINE.",
        "",
        "TASK:",
        "Accurately change the color of the garment in the provided image.",
        "",
        "USER INPUTS:",
        f"- Product Category: {category}",
        f"- Target Garment Color: {color.name} (Hex: {color.hex})",
        f"- Fabric Type: {settings.fabric_type}",
        "",
        "STRICT RULES:",
        *(f"{idx}. {rule}" for idx, rule in enumerate(rules, start=1)),
        "",
        "NEGATIVE PROMPT (AVOID):",
        "- Flat color overlay",
        "- Texture loss",
        "- Color spill on skin/background",
        "- Artificial smoothing",
        "- Color halos",
    ]
    return "\n".join(lines)
