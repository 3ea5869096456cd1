from pydantic import BaseModel, Field

MAX_CANDLES = 100


class TokenInfo(BaseModel):
    address: str | None = None
    name: str = "Unknown"
    symbol: str = "???"
    model_config = {"populate_by_name": True}


class Candle(BaseModel):
    t: int = Field(..., alias="timestamp")
    o: float = Field(..., alias="open")
    h: float = Field(..., alias="high")
    l: float = Field(..., alias="low")
    c: float = Field(..., alias="close")
    v: float = Field(0.0, alias="volume")
    model_config = {"populate_by_name": True, "frozen": True}


class Pair(BaseModel):
    pair_address: str
    base_token: TokenInfo = Field(default_factory=TokenInfo)
    dex_id: str = ""
    url: str = ""
    price_usd: float | None = None
    market_cap: float | None = None
    liquidity_usd: float | None = None
    volume_24h: float | None = None
    price_change_24h: float | None = None
    pair_created_at: int | None = None
    image_url: str | None = None
    rsi_5m: float | None = None
    rsi_15m: float | None = None
    ath: float | None = None
    candles_5m: list[Candle] = Field(default_factory=list)
    updated_at: int | None = None


# Fields refreshed from a discovery record for a pair that is already tracked
IDENTITY_FIELDS = (
    "base_token",
    "dex_id",
    "url",
    "price_usd",
    "market_cap",
    "liquidity_usd",
    "volume_24h",
    "price_change_24h",
    "pair_created_at",
    "image_url",
)

# Fields owned by the indicator refresh, never touched by discovery
INDICATOR_FIELDS = ("rsi_5m", "rsi_15m", "ath", "candles_5m")


class CollectorStats(BaseModel):
    total_pairs: int = 0
    overbought: int = 0
    oversold: int = 0
    avg_rsi: float | None = None
    collector_status: str = "starting"
    last_discovery: int | None = None
    last_stats_update: int | None = None
    last_ohlcv_update: int | None = None


class Snapshot(BaseModel):
    pairs: dict[str, Pair]
    stats: CollectorStats
