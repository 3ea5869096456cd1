"""
Shared builders and fakes for the test suite.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

from pairwatch.models import Candle, Pair, TokenInfo

NOW_MS = 1_700_000_000_000
HOUR_MS = 3_600_000


def make_raw_pair(address: str = "PAIR1", **overrides: Any) -> Dict[str, Any]:
    """DexScreener-shaped pair record that passes the default filter policy."""
    raw = {
        "chainId": "solana",
        "dexId": "pumpswap",
        "url": f"https://dexscreener.com/solana/{address.lower()}",
        "pairAddress": address,
        "baseToken": {"address": f"TOKEN_{address}", "name": "Test Token", "symbol": "TT"},
        "quoteToken": {"address": "So11111111111111111111111111111111111111112", "symbol": "SOL"},
        "priceUsd": "0.00123",
        "liquidity": {"usd": 25_000},
        "fdv": 120_000,
        "marketCap": 110_000,
        "volume": {"h24": 100_000},
        "priceChange": {"h24": -4.2},
        "pairCreatedAt": NOW_MS - 10 * HOUR_MS,
        "info": {"imageUrl": "https://cdn.example/token.png"},
    }
    raw.update(overrides)
    return raw


def make_pair(address: str = "PAIR1", **overrides: Any) -> Pair:
    data = {
        "pair_address": address,
        "base_token": TokenInfo(address=f"TOKEN_{address}", name="Test Token", symbol="TT"),
        "dex_id": "pumpswap",
        "price_usd": 1.0,
        "liquidity_usd": 25_000.0,
        "volume_24h": 100_000.0,
        "updated_at": NOW_MS,
    }
    data.update(overrides)
    return Pair(**data)


def make_candles(
    closes: List[float], highs: Optional[List[float]] = None, start_ms: int = NOW_MS
) -> List[Candle]:
    """Oldest-first 5m candles with the given closes."""
    highs = highs or [c * 1.01 for c in closes]
    return [
        Candle(t=start_ms + i * 300_000, o=c, h=h, l=c * 0.99, c=c, v=1_000.0)
        for i, (c, h) in enumerate(zip(closes, highs))
    ]


class FakeSink:
    """Collects every message a broadcaster writes."""

    def __init__(self, delay: float = 0.0):
        self.messages: List[Dict[str, Any]] = []
        self.delay = delay

    async def send(self, message: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.messages.append(json.loads(message))

    @property
    def events(self) -> List[str]:
        return [m["event"] for m in self.messages]


class FailingSink:
    def __init__(self):
        self.attempts = 0

    async def send(self, message: str) -> None:
        self.attempts += 1
        raise ConnectionError("client went away")


class FakeClock:
    """Virtual monotonic clock whose `sleep` advances time instantly."""

    def __init__(self, start: float = 1_000.0):
        self.current = start
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.current

    def advance(self, delta: float) -> None:
        self.current += delta

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.current += delay
        await asyncio.sleep(0)
