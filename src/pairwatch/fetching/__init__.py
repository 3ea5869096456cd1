"""
Upstream fetching: rate limiting, retrying HTTP client, API wrappers.
"""

from .rate_limiter import TokenBucketLimiter
from .fetcher import Fetcher, FetchError, RateLimitedError
from .upstream import DexScreenerAPI, GeckoTerminalAPI, parse_ohlcv_list

__all__ = [
    "TokenBucketLimiter",
    "Fetcher",
    "FetchError",
    "RateLimitedError",
    "DexScreenerAPI",
    "GeckoTerminalAPI",
    "parse_ohlcv_list",
]
