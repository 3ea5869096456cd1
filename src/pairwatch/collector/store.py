"""
Authoritative in-memory store of tracked pairs.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from pairwatch.indicators import compute_rsi, sample_coarse_closes, track_ath
from pairwatch.models import (
    IDENTITY_FIELDS,
    MAX_CANDLES,
    Candle,
    CollectorStats,
    Pair,
)
from pairwatch.utils import now_ms

logger = logging.getLogger(__name__)

OVERBOUGHT_RSI = 70
OVERSOLD_RSI = 30


@dataclass
class MergeResult:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    refreshed: List[str] = field(default_factory=list)

    @property
    def membership_changed(self) -> bool:
        return bool(self.added or self.removed)


class PairStore:
    """
    Map of pair address to `Pair`, owning merge/update/evict rules.

    ## Concurrency
    Every method is synchronous. The collector runs all tasks on one event
    loop, so each call completes without interleaving with other tasks.

    ## Invariants
    - Only `merge` inserts pairs; `update` and `record_candles` are no-ops
      for unknown addresses
    - `ath` never decreases
    - `candles_5m` is oldest-first and holds at most `MAX_CANDLES` entries
    """

    def __init__(self, pairs: Optional[Mapping[str, Pair]] = None):
        self._pairs: Dict[str, Pair] = dict(pairs or {})

    def __len__(self) -> int:
        return len(self._pairs)

    def __contains__(self, address: object) -> bool:
        return address in self._pairs

    def get(self, address: str) -> Optional[Pair]:
        return self._pairs.get(address)

    def addresses(self) -> List[str]:
        return list(self._pairs.keys())

    def pairs(self) -> Dict[str, Pair]:
        """Shallow copy of the current map."""
        return dict(self._pairs)

    def merge(self, discovered: Sequence[Pair]) -> MergeResult:
        """
        Make the store membership equal to the latest discovery result.

        ## Rules
        - Empty `discovered`: no change (a failed cycle never clears state)
        - New address: inserted as given, indicator fields unset
        - Known address: identity/market fields refreshed from the new record
          where present; RSI, ATH and candles untouched
        - Address not in `discovered`: removed
        """
        result = MergeResult()
        if not discovered:
            logger.info("Discovery returned no pairs, keeping existing set")
            return result

        incoming: Dict[str, Pair] = {}
        for pair in discovered:
            incoming.setdefault(pair.pair_address, pair)

        for address, pair in incoming.items():
            existing = self._pairs.get(address)
            if existing is None:
                self._pairs[address] = pair.model_copy(
                    update={
                        "rsi_5m": None,
                        "rsi_15m": None,
                        "ath": None,
                        "candles_5m": [],
                        "updated_at": pair.updated_at or now_ms(),
                    }
                )
                result.added.append(address)
            else:
                changes = {
                    name: getattr(pair, name)
                    for name in IDENTITY_FIELDS
                    if getattr(pair, name) is not None
                }
                changes["updated_at"] = now_ms()
                self._pairs[address] = existing.model_copy(update=changes)
                result.refreshed.append(address)

        for address in list(self._pairs):
            if address not in incoming:
                del self._pairs[address]
                result.removed.append(address)

        return result

    def update(self, address: str, patch: Mapping[str, Any]) -> Optional[Pair]:
        """
        Apply a partial update to a tracked pair.

        Returns the updated pair, or `None` (and does nothing) if the address
        is not tracked.
        """
        existing = self._pairs.get(address)
        if existing is None:
            return None

        rejected = (set(patch) - set(Pair.model_fields)) | ({"pair_address"} & set(patch))
        if rejected:
            raise ValueError(f"Cannot patch fields: {sorted(rejected)}")

        data = existing.model_dump()
        data.update(patch)
        updated = Pair.model_validate(data)
        self._pairs[address] = updated
        return updated

    def record_candles(self, address: str, candles: Sequence[Candle]) -> Optional[Pair]:
        """
        Replace the candle sequence and recompute indicators.

        RSI(5m) uses every close; RSI(15m) uses every third close. The ATH
        takes the candle highs and the live price into account. Returns the
        updated pair, or `None` if the address is not tracked.
        """
        existing = self._pairs.get(address)
        if existing is None:
            return None

        kept = list(candles)[-MAX_CANDLES:]
        closes = [c.c for c in kept]

        updated = existing.model_copy(
            update={
                "candles_5m": kept,
                "rsi_5m": compute_rsi(closes),
                "rsi_15m": compute_rsi(sample_coarse_closes(closes)),
                "ath": track_ath(existing.ath, (c.h for c in kept), existing.price_usd),
                "updated_at": now_ms(),
            }
        )
        self._pairs[address] = updated
        return updated

    def evict_by_indicator_band(self, lower: float, upper: float) -> List[str]:
        """
        Remove pairs whose RSIs are both known and either lies outside
        `[lower, upper]`. Pairs with an unknown RSI are exempt.
        """
        evicted: List[str] = []
        for address, pair in list(self._pairs.items()):
            if pair.rsi_5m is None or pair.rsi_15m is None:
                continue
            if not (lower <= pair.rsi_5m <= upper) or not (lower <= pair.rsi_15m <= upper):
                del self._pairs[address]
                evicted.append(address)
        return evicted

    def remove(self, addresses: Iterable[str]) -> List[str]:
        removed = []
        for address in addresses:
            if self._pairs.pop(address, None) is not None:
                removed.append(address)
        return removed

    def aggregate_stats(self) -> CollectorStats:
        """Counts and mean RSI(5m); timestamps and health are set by the collector."""
        rsi_values = [p.rsi_5m for p in self._pairs.values() if p.rsi_5m is not None]
        return CollectorStats(
            total_pairs=len(self._pairs),
            overbought=sum(1 for r in rsi_values if r > OVERBOUGHT_RSI),
            oversold=sum(1 for r in rsi_values if r < OVERSOLD_RSI),
            avg_rsi=round(sum(rsi_values) / len(rsi_values), 1) if rsi_values else None,
        )
