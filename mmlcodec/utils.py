from __future__ import annotations

import math
from typing import Sequence

from .constants import LOG_PREVIEW_CHARS


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def percentile(values: Sequence[float], fraction: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    index = int(round(clamp(fraction, 0.0, 1.0) * (len(ordered) - 1)))
    return ordered[index]


def ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def log2_count(count: int) -> float:
    return math.log2(count + 1)


def summarize_text(text: str, limit: int = LOG_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "...(truncated)"
