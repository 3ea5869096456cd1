"""
Fan-out of collector events to live subscribers.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

EVENT_SNAPSHOT = "snapshot"
EVENT_UPDATE = "update"
EVENT_HEARTBEAT = "heartbeat"


class Sink(Protocol):
    """Anything with an async `send(text)`; websocket connections qualify."""

    async def send(self, message: str) -> Any: ...


def encode_event(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": data}, separators=(",", ":"))


class Broadcaster:
    """
    Single-owner subscriber collection.

    ## Parameters
    - `snapshot_provider`: Returns the JSON-ready snapshot payload sent to
      every new subscriber
    - `send_timeout`: Seconds a sink may take per message before it is
      dropped (`None` waits indefinitely)

    ## Ordering
    `subscribe` and `publish` share one lock. A new sink gets its snapshot
    written before it joins the set, so no update can reach it first.

    ## Failure Handling
    A sink whose send raises or times out is unsubscribed on the spot and
    never retried. Other sinks in the same publish are unaffected.
    """

    def __init__(
        self,
        snapshot_provider: Callable[[], Dict[str, Any]],
        send_timeout: Optional[float] = 10.0,
    ):
        self._snapshot_provider = snapshot_provider
        self._send_timeout = send_timeout
        self._sinks: List[Sink] = []
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._sinks)

    async def _send(self, sink: Sink, message: str) -> bool:
        try:
            if self._send_timeout is None:
                await sink.send(message)
            else:
                await asyncio.wait_for(sink.send(message), self._send_timeout)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(f"Dropping subscriber {sink!r}: {type(e).__name__}: {e}")
            return False

    async def subscribe(self, sink: Sink) -> bool:
        """
        Register `sink` after delivering a full snapshot to it.

        Returns `False` if the snapshot could not be delivered; the sink is
        then not registered.
        """
        async with self._lock:
            if sink in self._sinks:
                return True
            message = encode_event(EVENT_SNAPSHOT, self._snapshot_provider())
            if not await self._send(sink, message):
                return False
            self._sinks.append(sink)

        logger.info(f"Subscriber added, {len(self._sinks)} connected")
        return True

    async def unsubscribe(self, sink: Sink) -> None:
        async with self._lock:
            self._remove(sink)

    def _remove(self, sink: Sink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)
            logger.info(f"Subscriber removed, {len(self._sinks)} connected")

    async def publish(self, event: str, data: Any) -> int:
        """
        Serialize once and write to every live sink concurrently.

        Returns the number of sinks that received the event.
        """
        message = encode_event(event, data)
        async with self._lock:
            sinks = list(self._sinks)
            if not sinks:
                return 0
            results = await asyncio.gather(*(self._send(s, message) for s in sinks))
            for sink, ok in zip(sinks, results):
                if not ok:
                    self._remove(sink)
        return sum(results)
