"""
Conversion of raw DexScreener pair records into collector models.
"""

import logging
from typing import Any, Dict, Optional

from pairwatch.models import Pair, TokenInfo
from pairwatch.utils import dig, is_number, now_ms, to_float

logger = logging.getLogger(__name__)


def pair_address_of(raw: Dict[str, Any]) -> Optional[str]:
    address = raw.get("pairAddress") or raw.get("address")
    return address if isinstance(address, str) and address else None


def _text(value: Any, default: Optional[str] = None) -> Optional[str]:
    """Non-empty strings pass through; anything else becomes `default`."""
    return value if isinstance(value, str) and value else default


def _token_info(raw_token: Any) -> TokenInfo:
    if not isinstance(raw_token, dict):
        return TokenInfo()
    return TokenInfo(
        address=_text(raw_token.get("address")),
        name=_text(raw_token.get("name"), "Unknown"),
        symbol=_text(raw_token.get("symbol"), "???"),
    )


def _market_cap(raw: Dict[str, Any]) -> Optional[float]:
    market_cap = to_float(raw.get("marketCap"))
    if market_cap is None:
        market_cap = to_float(raw.get("fdv"))
    return market_cap


def parse_pair(raw: Dict[str, Any]) -> Optional[Pair]:
    """
    Build a `Pair` from an accepted discovery record.

    Indicator fields start unset. Returns `None` if the record carries no
    pair address.
    """
    address = pair_address_of(raw)
    if address is None:
        return None

    created_at = raw.get("pairCreatedAt")

    return Pair(
        pair_address=address,
        base_token=_token_info(raw.get("baseToken")),
        dex_id=_text(raw.get("dexId"), ""),
        url=_text(raw.get("url"), ""),
        price_usd=to_float(raw.get("priceUsd")),
        market_cap=_market_cap(raw),
        liquidity_usd=to_float(dig(raw, "liquidity", "usd")),
        volume_24h=to_float(dig(raw, "volume", "h24")),
        price_change_24h=to_float(dig(raw, "priceChange", "h24")),
        pair_created_at=int(created_at) if is_number(created_at) else None,
        image_url=_text(dig(raw, "info", "imageUrl")),
        updated_at=now_ms(),
    )


def build_stats_patch(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a partial update from a live-stats record.

    ## Fail-open merge
    The pair is already tracked, so a missing or non-numeric field is
    simply left out of the patch and the cached value survives. Only
    `updated_at` is always present.
    """
    candidates = {
        "price_usd": to_float(raw.get("priceUsd")),
        "market_cap": _market_cap(raw),
        "liquidity_usd": to_float(dig(raw, "liquidity", "usd")),
        "volume_24h": to_float(dig(raw, "volume", "h24")),
        "price_change_24h": to_float(dig(raw, "priceChange", "h24")),
    }
    patch: Dict[str, Any] = {k: v for k, v in candidates.items() if v is not None}

    image_url = dig(raw, "info", "imageUrl")
    if isinstance(image_url, str) and image_url:
        patch["image_url"] = image_url

    patch["updated_at"] = now_ms()
    return patch
