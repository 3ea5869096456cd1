"""
Configuration constants and environment-driven settings for the collector.
"""

import os
from typing import Optional

from pydantic import BaseModel

from pairwatch.discovery import FilterPolicy

# Task intervals (seconds)
DISCOVERY_INTERVAL_SECONDS = 30
STATS_INTERVAL_SECONDS = 10
OHLCV_INTERVAL_SECONDS = 60
PERSIST_INTERVAL_SECONDS = 60
STATS_INITIAL_DELAY_SECONDS = 2
OHLCV_INITIAL_DELAY_SECONDS = 5

# GeckoTerminal free tier is ~30 req/min; pairs are staggered
OHLCV_PAIR_DELAY_SECONDS = 10
OHLCV_RATE_LIMIT_COOLDOWN_SECONDS = 30

# RSI watch band: pairs with both RSIs known and either outside are dropped
RSI_BAND_EVICTION = True
RSI_BAND_LOWER = 25.0
RSI_BAND_UPPER = 35.0

# Token buckets per endpoint class: (capacity, refill tokens/second)
DEX_LIMITER = (10, 2.0)
GECKO_LIMITER = (5, 0.5)
DISCOVERY_LIMITER = (3, 0.1)

STATS_BATCH_SIZE = 30
HEARTBEAT_INTERVAL_SECONDS = 15


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    if value.strip().lower() == "none":
        return None
    return float(value)


class CollectorSettings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///pairwatch.db"
    echo_sql: bool = False
    stream_host: str = "0.0.0.0"
    stream_port: int = 3001
    cold_start: bool = False

    discovery_interval: float = DISCOVERY_INTERVAL_SECONDS
    stats_interval: float = STATS_INTERVAL_SECONDS
    ohlcv_interval: float = OHLCV_INTERVAL_SECONDS
    persist_interval: float = PERSIST_INTERVAL_SECONDS
    stats_initial_delay: float = STATS_INITIAL_DELAY_SECONDS
    ohlcv_initial_delay: float = OHLCV_INITIAL_DELAY_SECONDS
    ohlcv_pair_delay: float = OHLCV_PAIR_DELAY_SECONDS
    ohlcv_rate_limit_cooldown: float = OHLCV_RATE_LIMIT_COOLDOWN_SECONDS

    rsi_band_eviction: bool = RSI_BAND_EVICTION
    rsi_band_lower: float = RSI_BAND_LOWER
    rsi_band_upper: float = RSI_BAND_UPPER

    filter_policy: FilterPolicy = FilterPolicy()

    @classmethod
    def from_env(cls) -> "CollectorSettings":
        """
        Read settings from the process environment.

        Call `load_dotenv()` first to pick up a `.env` file. Unset variables
        fall back to the module defaults.
        """
        defaults = cls()
        policy_defaults = defaults.filter_policy

        policy = FilterPolicy(
            chain_id=os.getenv("FILTER_CHAIN_ID", policy_defaults.chain_id),
            dex_ids=os.getenv("FILTER_DEX_IDS", ",".join(policy_defaults.dex_ids)),
            min_liquidity_usd=_env_float(
                "FILTER_MIN_LIQUIDITY", policy_defaults.min_liquidity_usd
            ),
            min_fdv=_env_float("FILTER_MIN_FDV", policy_defaults.min_fdv),
            max_fdv=_env_float("FILTER_MAX_FDV", policy_defaults.max_fdv),
            min_volume_24h=_env_float(
                "FILTER_MIN_VOLUME_24H", policy_defaults.min_volume_24h
            ),
            max_volume_24h=_env_float(
                "FILTER_MAX_VOLUME_24H", policy_defaults.max_volume_24h
            ),
            min_age_hours=_env_float("FILTER_MIN_AGE_HOURS", policy_defaults.min_age_hours),
            max_age_hours=_env_float("FILTER_MAX_AGE_HOURS", policy_defaults.max_age_hours),
            max_pairs=int(os.getenv("FILTER_MAX_PAIRS", policy_defaults.max_pairs or 0))
            or None,
        )

        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            echo_sql=_env_bool("ECHO_SQL", defaults.echo_sql),
            stream_host=os.getenv("STREAM_HOST", defaults.stream_host),
            stream_port=int(os.getenv("STREAM_PORT", defaults.stream_port)),
            cold_start=_env_bool("COLD_START", defaults.cold_start),
            discovery_interval=_env_float("DISCOVERY_INTERVAL", defaults.discovery_interval),
            stats_interval=_env_float("STATS_INTERVAL", defaults.stats_interval),
            ohlcv_interval=_env_float("OHLCV_INTERVAL", defaults.ohlcv_interval),
            persist_interval=_env_float("PERSIST_INTERVAL", defaults.persist_interval),
            ohlcv_pair_delay=_env_float("OHLCV_PAIR_DELAY", defaults.ohlcv_pair_delay),
            ohlcv_rate_limit_cooldown=_env_float(
                "OHLCV_RATE_LIMIT_COOLDOWN", defaults.ohlcv_rate_limit_cooldown
            ),
            rsi_band_eviction=_env_bool("RSI_BAND_EVICTION", defaults.rsi_band_eviction),
            rsi_band_lower=_env_float("RSI_BAND_LOWER", defaults.rsi_band_lower),
            rsi_band_upper=_env_float("RSI_BAND_UPPER", defaults.rsi_band_upper),
            filter_policy=policy,
        )
