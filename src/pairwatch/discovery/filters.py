"""
Acceptance predicate for discovered pair candidates.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_validator

from pairwatch.parsing import pair_address_of
from pairwatch.utils import dig, is_number

logger = logging.getLogger(__name__)

HOUR_MS = 3_600_000

# Rejection reasons, in evaluation order
REASON_ADDRESS = "address"
REASON_CHAIN = "chain_id"
REASON_DEX = "dex_id"
REASON_LIQUIDITY = "liquidity"
REASON_VALUATION = "valuation"
REASON_VOLUME = "volume"
REASON_AGE = "age"


class FilterPolicy(BaseModel):
    """
    Operator-configurable discovery thresholds.

    `None` for an upper bound means "no upper bound". Lower bounds are
    always enforced, so the corresponding field is always required.
    """

    chain_id: str = "solana"
    dex_ids: Tuple[str, ...] = ("pumpswap", "pumpfun")
    min_liquidity_usd: float = 10_000
    min_fdv: float = 30_000
    max_fdv: Optional[float] = None
    min_volume_24h: float = 80_000
    max_volume_24h: Optional[float] = 180_000
    min_age_hours: float = 2
    max_age_hours: Optional[float] = 1000
    max_pairs: Optional[int] = Field(20, ge=1)
    rank_by: str = "volume_24h"

    @field_validator("dex_ids", mode="before")
    @classmethod
    def _normalize_dex_ids(cls, value: Any) -> Tuple[str, ...]:
        if isinstance(value, str):
            value = value.split(",")
        return tuple(v.strip().lower() for v in value if v and v.strip())


def _out_of_range(value: float, lower: float, upper: Optional[float]) -> bool:
    return value < lower or (upper is not None and value > upper)


def rejection_reason(
    raw: Dict[str, Any], policy: FilterPolicy, now_ms: int
) -> Optional[str]:
    """
    Evaluate one raw candidate.

    ## Returns
    - `None` if the record is accepted
    - The name of the first failing rule otherwise

    ## Strict Mode
    A required field that is missing or not a JSON number rejects the
    record. No default is ever substituted.
    """
    if pair_address_of(raw) is None:
        return REASON_ADDRESS

    if raw.get("chainId") != policy.chain_id:
        return REASON_CHAIN

    dex_id = raw.get("dexId")
    if not isinstance(dex_id, str) or dex_id.lower() not in policy.dex_ids:
        return REASON_DEX

    liquidity = dig(raw, "liquidity", "usd")
    if not is_number(liquidity) or liquidity < policy.min_liquidity_usd:
        return REASON_LIQUIDITY

    fdv = raw.get("fdv")
    if not is_number(fdv) or _out_of_range(fdv, policy.min_fdv, policy.max_fdv):
        return REASON_VALUATION

    volume = dig(raw, "volume", "h24")
    if not is_number(volume) or _out_of_range(
        volume, policy.min_volume_24h, policy.max_volume_24h
    ):
        return REASON_VOLUME

    created_at = raw.get("pairCreatedAt")
    if not is_number(created_at) or created_at <= 0:
        return REASON_AGE
    age_hours = (now_ms - created_at) / HOUR_MS
    if _out_of_range(age_hours, policy.min_age_hours, policy.max_age_hours):
        return REASON_AGE

    return None


@dataclass
class FilterResult:
    accepted: List[Dict[str, Any]] = field(default_factory=list)
    rejected: Counter = field(default_factory=Counter)
    total: int = 0
    capped_from: Optional[int] = None

    def summary(self) -> str:
        removed = " ".join(f"{k}={v}" for k, v in sorted(self.rejected.items()))
        return (
            f"{self.total} raw -> {len(self.accepted)} passed"
            + (f" | removed: {removed}" if removed else "")
            + (f" | capped from {self.capped_from}" if self.capped_from else "")
        )


_RANK_KEYS = {
    "volume_24h": lambda raw: dig(raw, "volume", "h24"),
    "liquidity_usd": lambda raw: dig(raw, "liquidity", "usd"),
    "fdv": lambda raw: raw.get("fdv"),
    "pair_created_at": lambda raw: raw.get("pairCreatedAt"),
}


def rank_and_cap(
    accepted: List[Dict[str, Any]], rank_by: str, max_pairs: Optional[int]
) -> List[Dict[str, Any]]:
    """Sort descending by `rank_by` and keep the first `max_pairs`."""
    if max_pairs is None or len(accepted) <= max_pairs:
        return accepted

    key_fn = _RANK_KEYS.get(rank_by)
    if key_fn is None:
        raise ValueError(f"Unknown rank key: {rank_by}")

    ranked = sorted(accepted, key=lambda raw: key_fn(raw) or 0, reverse=True)
    return ranked[:max_pairs]


def filter_candidates(
    candidates: Sequence[Dict[str, Any]], policy: FilterPolicy, now_ms: int
) -> FilterResult:
    """Apply the predicate to every candidate, then rank and cap."""
    result = FilterResult(total=len(candidates))

    for raw in candidates:
        reason = rejection_reason(raw, policy, now_ms)
        if reason is None:
            result.accepted.append(raw)
        else:
            result.rejected[reason] += 1

    passed = len(result.accepted)
    result.accepted = rank_and_cap(result.accepted, policy.rank_by, policy.max_pairs)
    if len(result.accepted) < passed:
        result.capped_from = passed

    return result
