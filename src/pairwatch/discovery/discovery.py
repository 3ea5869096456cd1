"""
Ordered fallback chain of discovery strategies.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError

from pairwatch.discovery.filters import FilterPolicy, FilterResult, filter_candidates
from pairwatch.discovery.strategies import DEFAULT_STRATEGIES, DiscoveryStrategy
from pairwatch.fetching import DexScreenerAPI, FetchError
from pairwatch.models import Pair
from pairwatch.parsing import parse_pair
from pairwatch.utils import now_ms

logger = logging.getLogger(__name__)


def _parse_accepted(records: Sequence[Dict[str, Any]]) -> List[Pair]:
    pairs: List[Pair] = []
    for raw in records:
        try:
            pair = parse_pair(raw)
        except ValidationError as e:
            logger.warning(f"Skipping unparseable pair record {raw.get('pairAddress')}: {e}")
            continue
        if pair is not None:
            pairs.append(pair)
    return pairs


class PairDiscovery:
    """
    Turns upstream candidate lists into an accepted pair set.

    ## Parameters
    - `api`: DexScreener wrapper handed to every strategy
    - `policy`: Acceptance thresholds
    - `strategies`: Tried in order until one yields accepted pairs
    - `clock`: Epoch-milliseconds source for the age check

    ## Failure Semantics
    A strategy that raises `FetchError` or yields nothing that passes the
    filter hands over to the next one. If all of them come up empty the
    result is an empty list, which callers treat as "no change".
    """

    def __init__(
        self,
        api: DexScreenerAPI,
        policy: Optional[FilterPolicy] = None,
        strategies: Optional[Sequence[DiscoveryStrategy]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.api = api
        self.policy = policy or FilterPolicy()
        self.strategies: List[DiscoveryStrategy] = list(
            strategies if strategies is not None else DEFAULT_STRATEGIES
        )
        self._clock = clock
        self.last_result: Optional[FilterResult] = None
        self.last_strategy: Optional[str] = None

    async def discover(self) -> List[Pair]:
        for strategy in self.strategies:
            name = getattr(strategy, "__name__", repr(strategy))
            try:
                candidates = await strategy(self.api)
            except FetchError as e:
                logger.error(f"Discovery strategy '{name}' failed: {e}")
                continue

            result = filter_candidates(candidates, self.policy, self._clock())
            logger.info(f"Discovery '{name}' filter: {result.summary()}")

            pairs = _parse_accepted(result.accepted)
            if pairs:
                self.last_result = result
                self.last_strategy = name
                return pairs

            logger.info(f"Discovery strategy '{name}' yielded no pairs, trying next")

        logger.warning("All discovery strategies came up empty")
        return []
