"""
Discovery strategies.

Each strategy is a standalone coroutine function that takes the DexScreener
wrapper and returns raw pair records. Strategies hold no state, so they can
be tested in isolation and reordered freely.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Sequence

from pairwatch.fetching import DexScreenerAPI, FetchError
from pairwatch.parsing import pair_address_of

logger = logging.getLogger(__name__)

DiscoveryStrategy = Callable[[DexScreenerAPI], Awaitable[List[Dict[str, Any]]]]

DEFAULT_SEARCH_QUERIES = ("pumpswap", "pumpfun", "solana")


def dedupe_by_address(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the first record seen for every pair address, dropping address-less ones."""
    seen = set()
    unique: List[Dict[str, Any]] = []
    for record in records:
        address = pair_address_of(record)
        if address is None or address in seen:
            continue
        seen.add(address)
        unique.append(record)
    return unique


def _chain_token_addresses(entries: Sequence[Dict[str, Any]], chain_id: str) -> List[str]:
    addresses: List[str] = []
    for entry in entries:
        token_address = entry.get("tokenAddress")
        if entry.get("chainId") == chain_id and token_address and token_address not in addresses:
            addresses.append(token_address)
    return addresses


async def token_profiles(api: DexScreenerAPI) -> List[Dict[str, Any]]:
    """Latest token profiles -> token lookups -> pairs."""
    profiles = await api.latest_token_profiles()
    tokens = _chain_token_addresses(profiles, api.chain_id)
    logger.info(
        f"Profiles: {len(profiles)} profiles, {len(tokens)} unique {api.chain_id} tokens"
    )
    if not tokens:
        return []
    return dedupe_by_address(await api.pairs_for_tokens(tokens))


async def token_boosts(api: DexScreenerAPI) -> List[Dict[str, Any]]:
    """Latest boosted tokens -> token lookups -> pairs."""
    boosts = await api.latest_token_boosts()
    tokens = _chain_token_addresses(boosts, api.chain_id)
    logger.info(
        f"Boosts: {len(boosts)} boosts, {len(tokens)} unique {api.chain_id} tokens"
    )
    if not tokens:
        return []
    return dedupe_by_address(await api.pairs_for_tokens(tokens))


def search(queries: Sequence[str] = DEFAULT_SEARCH_QUERIES) -> DiscoveryStrategy:
    """
    Build a multi-query search strategy.

    Queries run in order; one failing query does not discard the results of
    the others unless every query fails.
    """

    async def search_strategy(api: DexScreenerAPI) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        errors: List[FetchError] = []
        for query in queries:
            try:
                records.extend(await api.search_pairs(query))
            except FetchError as e:
                logger.warning(f"Search query '{query}' failed: {e}")
                errors.append(e)

        if errors and len(errors) == len(queries):
            raise errors[-1]
        return dedupe_by_address(records)

    search_strategy.__name__ = "search"
    return search_strategy


DEFAULT_STRATEGIES: List[DiscoveryStrategy] = [token_profiles, token_boosts, search()]
