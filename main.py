"""
Main entry point for the PairWatch collector.

Discovers tradable pairs, keeps live price/RSI/ATH state in memory,
streams updates to WebSocket observers and snapshots state for crash
recovery.
"""

import asyncio

from dotenv import load_dotenv
from pairwatch.collector import Collector, CollectorSettings, StreamServer
from pairwatch.collector.config import DEX_LIMITER, DISCOVERY_LIMITER, GECKO_LIMITER
from pairwatch.collector.logging_config import setup_logging
from pairwatch.database import PersistenceGateway, get_async_db_manager
from pairwatch.discovery import PairDiscovery
from pairwatch.fetching import DexScreenerAPI, Fetcher, GeckoTerminalAPI, TokenBucketLimiter

# Load environment variables
load_dotenv()

# Setup logging
logger = setup_logging()


async def main() -> None:
    """
    Main entry point for the PairWatch collector.

    ## Initialization
    1. Read settings from environment
    2. Initialize database (degrades to no persistence on failure)
    3. Build limiters, fetcher, upstream wrappers and discovery chain
    4. Start collector tasks and the stream server

    ## Shutdown
    Cancellation or Ctrl+C stops the stream server, cancels the periodic
    tasks, persists a final snapshot and closes connections.
    """
    logger.info("=== PairWatch Collector Starting ===")
    settings = CollectorSettings.from_env()

    logger.info(f"Initializing database: {settings.database_url}")
    db_manager = None
    try:
        db_manager = await get_async_db_manager(
            database_url=settings.database_url, echo=settings.echo_sql
        )
    except Exception as e:
        logger.error(f"Database unavailable, running without persistence: {e}")

    fetcher = Fetcher()
    dex_api = DexScreenerAPI(
        fetcher,
        pairs_limiter=TokenBucketLimiter(*DEX_LIMITER, name="dexscreener"),
        discovery_limiter=TokenBucketLimiter(*DISCOVERY_LIMITER, name="discovery"),
        chain_id=settings.filter_policy.chain_id,
    )
    gecko_api = GeckoTerminalAPI(
        fetcher,
        TokenBucketLimiter(*GECKO_LIMITER, name="geckoterminal"),
        network=settings.filter_policy.chain_id,
    )

    collector = Collector(
        discovery=PairDiscovery(dex_api, settings.filter_policy),
        dex_api=dex_api,
        gecko_api=gecko_api,
        gateway=PersistenceGateway(db_manager),
        settings=settings,
    )
    stream_server = StreamServer(
        collector.broadcaster, host=settings.stream_host, port=settings.stream_port
    )

    try:
        await collector.start()
        await stream_server.start()
        await asyncio.Event().wait()
    finally:
        await stream_server.stop()
        await collector.stop()
        await fetcher.close()
        if db_manager is not None:
            await db_manager.close()
        logger.info("=== PairWatch Collector Stopped ===")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutdown completed gracefully")
