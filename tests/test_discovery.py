"""
Unit tests for discovery strategies and the fallback chain
===========================================================
Strategies are exercised against a mocked DexScreener wrapper; the chain
is exercised with stub strategies.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from pairwatch.discovery import (
    PairDiscovery,
    dedupe_by_address,
    search,
    token_boosts,
    token_profiles,
)
from pairwatch.discovery import discovery as discovery_module
from pairwatch.fetching import FetchError
from pairwatch.models import Pair
from helpers import NOW_MS, make_raw_pair


def stub(name, **kwargs):
    strategy = AsyncMock(**kwargs)
    strategy.__name__ = name
    return strategy


def make_api():
    api = MagicMock()
    api.chain_id = "solana"
    api.latest_token_profiles = AsyncMock(return_value=[])
    api.latest_token_boosts = AsyncMock(return_value=[])
    api.pairs_for_tokens = AsyncMock(return_value=[])
    api.search_pairs = AsyncMock(return_value=[])
    return api


class TestStrategies:

    @pytest.mark.asyncio
    async def test_token_profiles_looks_up_unique_chain_tokens(self):
        api = make_api()
        api.latest_token_profiles.return_value = [
            {"chainId": "solana", "tokenAddress": "T1"},
            {"chainId": "solana", "tokenAddress": "T1"},
            {"chainId": "base", "tokenAddress": "T2"},
            {"chainId": "solana", "tokenAddress": "T3"},
            {"chainId": "solana"},
        ]
        api.pairs_for_tokens.return_value = [make_raw_pair("A"), make_raw_pair("A"), make_raw_pair("B")]

        records = await token_profiles(api)

        api.pairs_for_tokens.assert_awaited_once_with(["T1", "T3"])
        assert [r["pairAddress"] for r in records] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_token_profiles_without_tokens_skips_lookup(self):
        api = make_api()

        assert await token_profiles(api) == []
        api.pairs_for_tokens.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_token_boosts_uses_boost_feed(self):
        api = make_api()
        api.latest_token_boosts.return_value = [{"chainId": "solana", "tokenAddress": "T9"}]
        api.pairs_for_tokens.return_value = [make_raw_pair("Z")]

        records = await token_boosts(api)

        api.pairs_for_tokens.assert_awaited_once_with(["T9"])
        assert [r["pairAddress"] for r in records] == ["Z"]

    @pytest.mark.asyncio
    async def test_search_merges_and_dedupes_queries(self):
        api = make_api()
        api.search_pairs.side_effect = [
            [make_raw_pair("A"), make_raw_pair("B")],
            [make_raw_pair("B"), make_raw_pair("C")],
        ]

        records = await search(("q1", "q2"))(api)

        assert [r["pairAddress"] for r in records] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_search_tolerates_partial_failure(self):
        api = make_api()
        api.search_pairs.side_effect = [FetchError("u1"), [make_raw_pair("A")]]

        records = await search(("q1", "q2"))(api)

        assert [r["pairAddress"] for r in records] == ["A"]

    @pytest.mark.asyncio
    async def test_search_raises_when_every_query_fails(self):
        api = make_api()
        api.search_pairs.side_effect = FetchError("u")

        with pytest.raises(FetchError):
            await search(("q1", "q2"))(api)

    def test_dedupe_drops_records_without_address(self):
        raw = make_raw_pair("A")
        no_address = make_raw_pair("B")
        del no_address["pairAddress"]

        assert dedupe_by_address([raw, no_address, raw]) == [raw]


class TestPairDiscovery:

    @pytest.mark.asyncio
    async def test_primary_result_is_used(self):
        primary = stub("primary", return_value=[make_raw_pair("A")])
        fallback = stub("fallback", return_value=[make_raw_pair("B")])
        discovery = PairDiscovery(make_api(), strategies=[primary, fallback], clock=lambda: NOW_MS)

        pairs = await discovery.discover()

        assert [p.pair_address for p in pairs] == ["A"]
        fallback.assert_not_awaited()
        assert discovery.last_strategy == "primary"

    @pytest.mark.asyncio
    async def test_falls_back_on_error_and_on_empty(self):
        failing = stub("failing", side_effect=FetchError("u"))
        empty = stub("empty", return_value=[])
        filtered_out = stub("filtered", return_value=[make_raw_pair("X", chainId="base")])
        working = stub("working", return_value=[make_raw_pair("B")])
        discovery = PairDiscovery(
            make_api(), strategies=[failing, empty, filtered_out, working], clock=lambda: NOW_MS
        )

        pairs = await discovery.discover()

        assert [p.pair_address for p in pairs] == ["B"]
        assert discovery.last_strategy == "working"

    @pytest.mark.asyncio
    async def test_all_strategies_empty_returns_empty(self):
        failing = stub("failing", side_effect=FetchError("u"))
        empty = stub("empty", return_value=[])
        discovery = PairDiscovery(make_api(), strategies=[failing, empty], clock=lambda: NOW_MS)

        assert await discovery.discover() == []

    @pytest.mark.asyncio
    async def test_accepted_records_become_pairs(self):
        strategy = stub("s", return_value=[make_raw_pair("A")])
        discovery = PairDiscovery(make_api(), strategies=[strategy], clock=lambda: NOW_MS)

        [pair] = await discovery.discover()

        assert pair.pair_address == "A"
        assert pair.price_usd == pytest.approx(0.00123)
        assert pair.market_cap == 110_000
        assert pair.liquidity_usd == 25_000
        assert pair.base_token.symbol == "TT"
        assert pair.image_url == "https://cdn.example/token.png"
        assert pair.rsi_5m is None and pair.rsi_15m is None and pair.ath is None

    @pytest.mark.asyncio
    async def test_wrong_typed_identity_fields_do_not_abort_cycle(self):
        """Non-string url or token metadata falls back to defaults"""
        records = [
            make_raw_pair("GOOD"),
            make_raw_pair("BAD_URL", url={"x": 1}),
            make_raw_pair("BAD_TOKEN", baseToken={"address": 42, "name": 123, "symbol": ["T"]}),
            make_raw_pair("BAD_IMAGE", info={"imageUrl": 7}),
        ]
        strategy = stub("s", return_value=records)
        discovery = PairDiscovery(make_api(), strategies=[strategy], clock=lambda: NOW_MS)

        pairs = {p.pair_address: p for p in await discovery.discover()}

        assert set(pairs) == {"GOOD", "BAD_URL", "BAD_TOKEN", "BAD_IMAGE"}
        assert pairs["BAD_URL"].url == ""
        token = pairs["BAD_TOKEN"].base_token
        assert (token.address, token.name, token.symbol) == (None, "Unknown", "???")
        assert pairs["BAD_IMAGE"].image_url is None

    @pytest.mark.asyncio
    async def test_unparseable_record_is_skipped(self, monkeypatch):
        real_parse = discovery_module.parse_pair

        def parse_or_fail(raw):
            if raw["pairAddress"] == "BAD":
                return Pair.model_validate({})
            return real_parse(raw)

        monkeypatch.setattr(discovery_module, "parse_pair", parse_or_fail)
        strategy = stub("s", return_value=[make_raw_pair("GOOD"), make_raw_pair("BAD")])
        discovery = PairDiscovery(make_api(), strategies=[strategy], clock=lambda: NOW_MS)

        assert [p.pair_address for p in await discovery.discover()] == ["GOOD"]
