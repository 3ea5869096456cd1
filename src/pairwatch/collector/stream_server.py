"""
WebSocket stream endpoint for collector observers.
"""

import logging
from typing import Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from pairwatch.collector.broadcaster import EVENT_HEARTBEAT, Broadcaster
from pairwatch.collector.config import HEARTBEAT_INTERVAL_SECONDS
from pairwatch.collector.scheduler import PeriodicTask
from pairwatch.utils import now_ms

logger = logging.getLogger(__name__)


class StreamServer:
    """
    Serve the broadcaster over WebSocket.

    ## Protocol
    Every message is a JSON text frame `{"event": ..., "data": ...}`:
    1. One `snapshot` immediately after connecting
    2. `update` events as the collector refreshes pairs
    3. `heartbeat` every 15 seconds

    Client messages are ignored. A client that disconnects (or whose send
    fails) is unsubscribed.
    """

    def __init__(
        self,
        broadcaster: Broadcaster,
        host: str = "0.0.0.0",
        port: int = 3001,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
    ):
        self.broadcaster = broadcaster
        self.host = host
        self.port = port
        self._server: Optional[Server] = None
        self._heartbeat = PeriodicTask(
            "heartbeat", self._send_heartbeat, heartbeat_interval,
            initial_delay=heartbeat_interval,
        )

    async def _send_heartbeat(self) -> None:
        await self.broadcaster.publish(EVENT_HEARTBEAT, {"ts": now_ms()})

    async def handler(self, connection: ServerConnection) -> None:
        logger.info(f"Stream client connected: {connection.remote_address}")
        if not await self.broadcaster.subscribe(connection):
            return
        try:
            async for _ in connection:
                pass
        except ConnectionClosed:
            pass
        finally:
            await self.broadcaster.unsubscribe(connection)
            logger.info(f"Stream client disconnected: {connection.remote_address}")

    async def start(self) -> None:
        self._server = await serve(self.handler, self.host, self.port)
        self._heartbeat.start()
        logger.info(f"Stream server listening on ws://{self.host}:{self.port}")

    async def stop(self) -> None:
        await self._heartbeat.stop()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        logger.info("Stream server stopped")
