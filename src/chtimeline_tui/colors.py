"""
colors.py - Heat colors for flame-graph frames.

A frame's color blends two signals: its log-scaled weight against the hottest
frame in the whole tree, and its share among its siblings. The result lands
on a yellow -> orange -> red gradient; redder means hotter.
"""
import math

RGB = tuple[int, int, int]

NEUTRAL_COLOR: RGB = (160, 160, 160)
GREEN_HIGH = 220
GREEN_MID = 140
SPLIT = 0.3


def _clamp(v: float) -> float:
    return 0.0 if v < 0 else 1.0 if v > 1 else v


def blended_ratio(count: int, max_count: int, relative_ratio: float) -> float:
    """0.7 * global log intensity + 0.3 * local share, in [0, 1]."""
    log_ratio = _clamp(math.log2(1 + 7 * count / max_count) / math.log2(8))
    return _clamp(0.7 * log_ratio + 0.3 * relative_ratio)


def heat_color(count: int, max_count: int, relative_ratio: float) -> RGB:
    """Map a frame's weight to an (r, g, b) heat color."""
    if max_count == 0:
        return NEUTRAL_COLOR
    b = blended_ratio(count, max_count, relative_ratio)
    if b < SPLIT:
        green = GREEN_HIGH - (GREEN_HIGH - GREEN_MID) * b / SPLIT
    else:
        green = GREEN_MID * (1 - (b - SPLIT) / (1 - SPLIT))
    return 255, int(round(green)), 0


def to_xterm256(rgb: RGB) -> int:
    """Nearest entry of the 6x6x6 xterm color cube (indices 16-231)."""
    def level(c):
        return 0 if c < 48 else 1 if c < 115 else (c - 35) // 40
    r, g, b = (level(c) for c in rgb)
    return 16 + 36 * r + 6 * g + b


def to_hex(rgb: RGB) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


def is_hot(rgb: RGB) -> bool:
    """Red half of the gradient, for 8-color terminals."""
    return rgb != NEUTRAL_COLOR and rgb[1] < GREEN_MID
