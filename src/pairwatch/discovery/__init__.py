"""
Pair discovery: upstream strategies, acceptance filter, fallback chain.
"""

from .filters import FilterPolicy, FilterResult, filter_candidates, rejection_reason
from .strategies import (
    DEFAULT_STRATEGIES,
    DiscoveryStrategy,
    dedupe_by_address,
    search,
    token_boosts,
    token_profiles,
)
from .discovery import PairDiscovery

__all__ = [
    "FilterPolicy",
    "FilterResult",
    "filter_candidates",
    "rejection_reason",
    "DEFAULT_STRATEGIES",
    "DiscoveryStrategy",
    "dedupe_by_address",
    "search",
    "token_boosts",
    "token_profiles",
    "PairDiscovery",
]
