from __future__ import annotations

from .constants import REPORT_DECIMALS


def round12(x: float) -> float:
    """Round a final reported value. Never apply to intermediate terms."""
    return round(float(x), REPORT_DECIMALS)
