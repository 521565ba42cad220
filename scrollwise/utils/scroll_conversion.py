"""
Scroll distance conversion.

Browser pixels are CSS pixels at the standard 96 DPI:
96 px = 1 inch = 2.54 cm, so 1 px ≈ 0.0265 cm.
"""

from __future__ import annotations

import math

PIXELS_PER_INCH = 96
CM_PER_INCH = 2.54
CM_PER_PIXEL = CM_PER_INCH / PIXELS_PER_INCH
KM_PER_CM = 0.00001


def _valid(pixels: float) -> bool:
    return isinstance(pixels, (int, float)) and math.isfinite(pixels) and pixels >= 0


def pixels_to_centimeters(pixels: float) -> float:
    if not _valid(pixels):
        return 0.0
    return pixels * CM_PER_PIXEL


def pixels_to_kilometers(pixels: float) -> float:
    if not _valid(pixels):
        return 0.0
    return pixels_to_centimeters(pixels) * KM_PER_CM


def format_scroll_distance_with_both(pixels: float) -> str:
    """'254.6 cm (2.55 km)' once kilometers are visible, plain centimeters below that."""
    if not _valid(pixels):
        return "0 cm"

    cm = pixels_to_centimeters(pixels)
    km = pixels_to_kilometers(pixels)

    if km >= 0.5:
        return f"{cm:.1f} cm ({km:.2f} km)"
    if km >= 0.1:
        return f"{cm:.1f} cm ({km:.3f} km)"
    return f"{cm:.1f} cm"


def describe_scroll_distance(pixels: float) -> str:
    """Natural-language distance used in prompts and the fallback template."""
    cm = pixels_to_centimeters(pixels)
    km = pixels_to_kilometers(pixels)

    if km >= 1:
        return f"over {km:.1f} kilometers"
    if km >= 0.1:
        return f"{km:.2f} kilometers"
    if cm >= 100:
        return f"over {math.floor(cm / 100 + 0.5)} meters"
    if cm >= 10:
        return f"{math.floor(cm + 0.5)} centimeters"
    return f"just under {cm:.1f} centimeters"
