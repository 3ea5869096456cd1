"""
Wrappers for the upstream market-data APIs.

- DexScreener: discovery (profiles, boosts, search), token and pair lookups
- GeckoTerminal: 5-minute OHLCV per pool
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Sequence

from pairwatch.fetching.fetcher import FetchError, Fetcher
from pairwatch.fetching.rate_limiter import TokenBucketLimiter
from pairwatch.models import Candle

logger = logging.getLogger(__name__)

BATCH_SIZE = 30


def _batches(items: Sequence[str], size: int = BATCH_SIZE) -> Iterable[List[str]]:
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


def _as_list(data: Any, key: str) -> List[Dict[str, Any]]:
    """Accept either a bare JSON array or an object wrapping one under `key`."""
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return [item for item in data[key] if isinstance(item, dict)]
    return []


class DexScreenerAPI:
    """DexScreener public API endpoints used by discovery and stats refresh."""

    BASE_URL = "https://api.dexscreener.com"

    def __init__(
        self,
        fetcher: Fetcher,
        pairs_limiter: TokenBucketLimiter,
        discovery_limiter: TokenBucketLimiter,
        chain_id: str = "solana",
    ):
        self.fetcher = fetcher
        self.pairs_limiter = pairs_limiter
        self.discovery_limiter = discovery_limiter
        self.chain_id = chain_id

    async def latest_token_profiles(self) -> List[Dict[str, Any]]:
        data = await self.fetcher.fetch_json(
            f"{self.BASE_URL}/token-profiles/latest/v1", self.discovery_limiter
        )
        return _as_list(data, "data")

    async def latest_token_boosts(self) -> List[Dict[str, Any]]:
        data = await self.fetcher.fetch_json(
            f"{self.BASE_URL}/token-boosts/latest/v1", self.discovery_limiter
        )
        return _as_list(data, "data")

    async def search_pairs(self, query: str) -> List[Dict[str, Any]]:
        data = await self.fetcher.fetch_json(
            f"{self.BASE_URL}/latest/dex/search",
            self.discovery_limiter,
            params={"q": query},
        )
        return _as_list(data, "pairs")

    async def pairs_for_tokens(self, token_addresses: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Look up every pair of the given tokens, 30 tokens per request.

        A failed batch is logged and skipped; the other batches still count.
        Raises the last `FetchError` only when every batch failed.
        """
        pairs: List[Dict[str, Any]] = []
        errors: List[FetchError] = []
        batches = list(_batches(token_addresses))
        for batch in batches:
            try:
                data = await self.fetcher.fetch_json(
                    f"{self.BASE_URL}/latest/dex/tokens/{','.join(batch)}",
                    self.pairs_limiter,
                )
            except FetchError as e:
                logger.warning(f"Token batch of {len(batch)} failed: {e}")
                errors.append(e)
                continue
            pairs.extend(_as_list(data, "pairs"))

        if errors and len(errors) == len(batches):
            raise errors[-1]
        return pairs

    async def pair_stats(self, pair_addresses: Sequence[str]) -> List[Dict[str, Any]]:
        """Fetch a single batch (at most 30) of live pair records."""
        joined = ",".join(pair_addresses)
        data = await self.fetcher.fetch_json(
            f"{self.BASE_URL}/latest/dex/pairs/{self.chain_id}/{joined}",
            self.pairs_limiter,
        )
        return _as_list(data, "pairs")


def parse_ohlcv_list(ohlcv_list: Sequence[Sequence[Any]]) -> List[Candle]:
    """
    Convert GeckoTerminal rows to candles, oldest first.

    Rows arrive newest first as `[timestamp, open, high, low, close, volume]`.
    Malformed rows, including rows with NaN or infinite values, are dropped.
    """
    candles: List[Candle] = []
    for row in reversed(ohlcv_list):
        try:
            values = [float(v) for v in row[1:6]]
            if len(values) < 5 or not all(math.isfinite(v) for v in values):
                raise ValueError("incomplete or non-finite values")
            o, h, l, c, v = values
            candles.append(Candle(t=int(row[0]), o=o, h=h, l=l, c=c, v=v))
        except (TypeError, ValueError, IndexError, OverflowError) as e:
            logger.debug(f"Skipping malformed OHLCV row {row!r}: {e}")
    return candles


class GeckoTerminalAPI:
    """GeckoTerminal OHLCV endpoint."""

    BASE_URL = "https://api.geckoterminal.com/api/v2"

    def __init__(
        self,
        fetcher: Fetcher,
        limiter: TokenBucketLimiter,
        network: str = "solana",
        aggregate_minutes: int = 5,
        limit: int = 100,
    ):
        self.fetcher = fetcher
        self.limiter = limiter
        self.network = network
        self.aggregate_minutes = aggregate_minutes
        self.limit = limit

    async def ohlcv(self, pool_address: str) -> List[Candle]:
        url = (
            f"{self.BASE_URL}/networks/{self.network}/pools/{pool_address}"
            f"/ohlcv/minute"
        )
        data = await self.fetcher.fetch_json(
            url,
            self.limiter,
            params={
                "aggregate": self.aggregate_minutes,
                "limit": self.limit,
                "currency": "usd",
            },
        )
        try:
            ohlcv_list = data["data"]["attributes"]["ohlcv_list"] or []
        except (KeyError, TypeError):
            ohlcv_list = []
        return parse_ohlcv_list(ohlcv_list)
