"""
Technical indicators computed from 5-minute candles.

All functions are pure: they take plain sequences and return numbers
(or ``None`` when there is not enough history).
"""

import math
from typing import Iterable, List, Optional, Sequence

RSI_PERIOD = 14
COARSE_FACTOR = 3


def compute_rsi(closes: Sequence[float], period: int = RSI_PERIOD) -> Optional[float]:
    """
    Compute RSI using Wilder's smoothing on close prices.

    ## Parameters
    - `closes`: Close prices, oldest first
    - `period`: RSI period (default 14)

    ## Returns
    - RSI value in [0, 100]
    - `None` when fewer than `period + 1` closes are available

    ## Algorithm
    1. Seed average gain/loss with the mean of the first `period` deltas
    2. Smooth every later delta: `avg = (avg * (period - 1) + x) / period`
    3. `avg_loss == 0` yields 100, otherwise `100 - 100 / (1 + RS)`
    """
    if not closes or len(closes) < period + 1:
        return None

    avg_gain = 0.0
    avg_loss = 0.0

    for i in range(1, period + 1):
        change = closes[i] - closes[i - 1]
        if change > 0:
            avg_gain += change
        else:
            avg_loss += abs(change)

    avg_gain /= period
    avg_loss /= period

    for i in range(period + 1, len(closes)):
        change = closes[i] - closes[i - 1]
        gain = change if change > 0 else 0.0
        loss = abs(change) if change < 0 else 0.0

        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100 - 100 / (1 + rs)


def sample_coarse_closes(
    closes: Sequence[float], factor: int = COARSE_FACTOR
) -> List[float]:
    """
    Approximate a coarser timeframe by sampling every `factor`-th close.

    Starts at index `factor - 1`, so three 5m closes stand in for one 15m
    candle. This is sampling, not OHLC re-aggregation.
    """
    return [closes[i] for i in range(factor - 1, len(closes), factor)]


def track_ath(
    existing_ath: Optional[float],
    candle_highs: Iterable[float],
    live_price: Optional[float] = None,
) -> Optional[float]:
    """
    Return the new all-time-high.

    Max of the existing ATH, the candle highs and the live price, ignoring
    missing and non-finite values. Never lower than `existing_ath`.
    """
    candidates = [
        value
        for value in (*candle_highs, existing_ath, live_price)
        if value is not None and math.isfinite(value)
    ]

    if not candidates:
        return existing_ath
    return max(candidates)
