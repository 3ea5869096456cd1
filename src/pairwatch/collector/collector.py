"""
Collector: periodic discovery, stats, indicator and persistence tasks
against one shared PairStore.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pairwatch.collector.broadcaster import EVENT_SNAPSHOT, EVENT_UPDATE, Broadcaster
from pairwatch.collector.config import STATS_BATCH_SIZE, CollectorSettings
from pairwatch.collector.scheduler import PeriodicTask
from pairwatch.collector.store import PairStore
from pairwatch.database import PersistenceGateway
from pairwatch.discovery import PairDiscovery
from pairwatch.fetching import DexScreenerAPI, FetchError, GeckoTerminalAPI, RateLimitedError
from pairwatch.models import CollectorStats, Pair
from pairwatch.parsing import build_stats_patch, pair_address_of
from pairwatch.utils import now_ms

logger = logging.getLogger(__name__)

STATUS_STARTING = "starting"
STATUS_RUNNING = "running"
STATUS_STOPPED = "stopped"


class Collector:
    """
    Owns the pair store and drives every task against it.

    ## Lifecycle
    1. Construct with collaborators (store seeded empty)
    2. `start()`: restore from persistence, run a first discovery, schedule
       the periodic tasks
    3. `stop()`: cancel the tasks and persist a final snapshot

    ## Queries
    - `snapshot()`: full pair map plus aggregate stats
    - `stats()`: aggregate stats only
    """

    def __init__(
        self,
        discovery: PairDiscovery,
        dex_api: DexScreenerAPI,
        gecko_api: GeckoTerminalAPI,
        gateway: PersistenceGateway,
        settings: Optional[CollectorSettings] = None,
        store: Optional[PairStore] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.discovery = discovery
        self.dex_api = dex_api
        self.gecko_api = gecko_api
        self.gateway = gateway
        self.settings = settings or CollectorSettings()
        self.store = store if store is not None else PairStore()
        self.broadcaster = Broadcaster(self.snapshot)
        self._sleep = sleep

        self.collector_status = STATUS_STARTING
        self.last_discovery: Optional[int] = None
        self.last_stats_update: Optional[int] = None
        self.last_ohlcv_update: Optional[int] = None
        self._tasks: List[PeriodicTask] = []

    # --- Queries ---

    def stats_model(self) -> CollectorStats:
        return self.store.aggregate_stats().model_copy(
            update={
                "collector_status": self.collector_status,
                "last_discovery": self.last_discovery,
                "last_stats_update": self.last_stats_update,
                "last_ohlcv_update": self.last_ohlcv_update,
            }
        )

    def stats(self) -> Dict[str, Any]:
        return self.stats_model().model_dump(mode="json")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "pairs": {
                address: pair.model_dump(mode="json")
                for address, pair in self.store.pairs().items()
            },
            "stats": self.stats(),
        }

    async def publish_snapshot(self) -> None:
        await self.broadcaster.publish(EVENT_SNAPSHOT, self.snapshot())

    async def publish_update(self, pairs: List[Pair]) -> None:
        live = [p for p in pairs if p.pair_address in self.store]
        if not live:
            return
        await self.broadcaster.publish(
            EVENT_UPDATE,
            {"pairs": [p.model_dump(mode="json") for p in live], "stats": self.stats()},
        )

    # --- Discovery ---

    async def run_discovery(self) -> None:
        """
        Merge the latest discovery result into the store.

        An empty result leaves the store untouched and publishes nothing.
        Membership changes publish a full snapshot; otherwise refreshed
        pairs go out as an update.
        """
        discovered = await self.discovery.discover()
        if not discovered:
            logger.info("Discovery returned 0 pairs, keeping existing")
            return

        result = self.store.merge(discovered)
        self.last_discovery = now_ms()
        self.collector_status = STATUS_RUNNING

        logger.info(
            f"Discovered {len(discovered)} pairs "
            f"(+{len(result.added)} -{len(result.removed)}), total: {len(self.store)}"
        )

        if result.membership_changed:
            await self.publish_snapshot()
        elif result.refreshed:
            await self.publish_update([self.store.get(a) for a in result.refreshed])

    # --- Live stats ---

    async def run_stats_update(self) -> None:
        """Refresh price/volume/liquidity for tracked pairs, 30 per request."""
        addresses = self.store.addresses()
        if not addresses:
            return

        updated: List[Pair] = []
        for i in range(0, len(addresses), STATS_BATCH_SIZE):
            batch = addresses[i : i + STATS_BATCH_SIZE]
            try:
                records = await self.dex_api.pair_stats(batch)
            except FetchError as e:
                logger.error(f"Stats batch error: {e}")
                continue

            for raw in records:
                address = pair_address_of(raw)
                if address is None:
                    continue
                pair = self.store.update(address, build_stats_patch(raw))
                if pair is not None:
                    updated.append(pair)

        self.last_stats_update = now_ms()
        logger.info(f"Stats updated for {len(updated)} pairs")
        await self.publish_update(updated)

    # --- OHLCV + RSI ---

    async def run_ohlcv_update(self) -> None:
        """
        Fetch candles per pair, recompute RSI/ATH, then apply band eviction.

        Pairs are fetched one at a time with a fixed delay in between. An
        HTTP 429 from the OHLCV endpoint swaps that delay for an extended
        cooldown.
        """
        addresses = self.store.addresses()
        if not addresses:
            return

        updated: List[Pair] = []
        for index, address in enumerate(addresses):
            if address not in self.store:
                continue
            try:
                candles = await self.gecko_api.ohlcv(address)
                if candles:
                    pair = self.store.record_candles(address, candles)
                    if pair is not None:
                        updated.append(pair)
            except RateLimitedError as e:
                logger.warning(
                    f"OHLCV rate limited for {address}, cooling down "
                    f"{self.settings.ohlcv_rate_limit_cooldown}s: {e}"
                )
                await self._sleep(self.settings.ohlcv_rate_limit_cooldown)
                # The cooldown replaces the regular pair delay
                continue
            except FetchError as e:
                logger.error(f"OHLCV error for {address}: {e}")

            if index < len(addresses) - 1:
                await self._sleep(self.settings.ohlcv_pair_delay)

        self.last_ohlcv_update = now_ms()
        logger.info(f"OHLCV updated for {len(updated)} pairs")
        await self.publish_update(updated)

        if self.settings.rsi_band_eviction:
            evicted = self.store.evict_by_indicator_band(
                self.settings.rsi_band_lower, self.settings.rsi_band_upper
            )
            if evicted:
                logger.info(
                    f"RSI filter removed {len(evicted)} pairs, {len(self.store)} remaining"
                )
                await self.publish_snapshot()

    # --- Persistence ---

    async def run_persist(self) -> None:
        await self.gateway.save(self.store.pairs())

    # --- Lifecycle ---

    async def restore(self) -> None:
        if self.settings.cold_start:
            logger.info("Cold start requested, clearing stored snapshot")
            await self.gateway.clear()
            return
        restored = await self.gateway.load()
        self.store = PairStore(restored)

    def _build_tasks(self) -> List[PeriodicTask]:
        s = self.settings
        return [
            PeriodicTask(
                "discovery", self.run_discovery, s.discovery_interval,
                initial_delay=s.discovery_interval,
            ),
            PeriodicTask(
                "stats", self.run_stats_update, s.stats_interval,
                initial_delay=s.stats_initial_delay,
            ),
            PeriodicTask(
                "ohlcv", self.run_ohlcv_update, s.ohlcv_interval,
                initial_delay=s.ohlcv_initial_delay,
            ),
            PeriodicTask(
                "persist", self.run_persist, s.persist_interval,
                initial_delay=s.persist_interval,
            ),
        ]

    async def start(self) -> None:
        logger.info("Starting collector...")
        await self.restore()

        try:
            await self.run_discovery()
        except Exception as e:
            logger.error(f"Initial discovery failed: {e}", exc_info=True)

        self._tasks = self._build_tasks()
        for task in self._tasks:
            task.start()

        logger.info(f"Collector started ({self.collector_status})")

    async def stop(self) -> None:
        for task in self._tasks:
            await task.stop()
        self._tasks = []
        await self.run_persist()
        self.collector_status = STATUS_STOPPED
        logger.info("Collector stopped")
