"""
Small helpers shared across the collector.
"""

import math
import time
from typing import Any, Optional


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_number(value: Any) -> bool:
    """
    True for finite ints/floats.

    Booleans, numeric strings and NaN/inf are rejected: discovery filtering
    only trusts values the upstream sent as JSON numbers.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def to_float(value: Any) -> Optional[float]:
    """
    Lenient float conversion for stats refresh.

    Accepts numbers and numeric strings (DexScreener sends `priceUsd` as a
    string). Returns `None` for anything else.
    """
    if is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            result = float(value)
        except ValueError:
            return None
        return result if math.isfinite(result) else None
    return None


def dig(data: Any, *keys: str) -> Any:
    """Walk nested dicts, returning `None` as soon as a level is missing."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data
