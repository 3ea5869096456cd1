"""
Unit tests for Broadcaster
===========================
Snapshot-first delivery, fan-out and dropping of failed subscribers.
"""

import asyncio
import json

import pytest

from pairwatch.collector import Broadcaster, encode_event
from helpers import FailingSink, FakeSink


def make_broadcaster(send_timeout=10.0):
    state = {"version": 0}

    def snapshot():
        return {"pairs": {}, "version": state["version"]}

    return Broadcaster(snapshot, send_timeout=send_timeout), state


class TestSubscribe:

    @pytest.mark.asyncio
    async def test_new_subscriber_gets_snapshot_first(self):
        broadcaster, _ = make_broadcaster()
        sink = FakeSink()

        assert await broadcaster.subscribe(sink) is True
        await broadcaster.publish("update", {"pairs": []})

        assert sink.events == ["snapshot", "update"]
        assert broadcaster.subscriber_count == 1

    @pytest.mark.asyncio
    async def test_snapshot_first_under_concurrent_publish(self):
        """A publish racing a slow subscribe still lands after the snapshot"""
        broadcaster, state = make_broadcaster()
        slow = FakeSink(delay=0.05)

        subscribing = asyncio.create_task(broadcaster.subscribe(slow))
        await asyncio.sleep(0)
        state["version"] = 1
        publishing = asyncio.create_task(broadcaster.publish("update", {"n": 1}))
        await asyncio.gather(subscribing, publishing)

        assert slow.events == ["snapshot", "update"]
        assert slow.messages[0]["data"]["version"] == 0

    @pytest.mark.asyncio
    async def test_failed_snapshot_does_not_register(self):
        broadcaster, _ = make_broadcaster()

        assert await broadcaster.subscribe(FailingSink()) is False
        assert broadcaster.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_subscribe_twice_is_idempotent(self):
        broadcaster, _ = make_broadcaster()
        sink = FakeSink()

        await broadcaster.subscribe(sink)
        await broadcaster.subscribe(sink)

        assert broadcaster.subscriber_count == 1
        assert sink.events == ["snapshot"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        broadcaster, _ = make_broadcaster()
        sink = FakeSink()
        await broadcaster.subscribe(sink)

        await broadcaster.unsubscribe(sink)
        delivered = await broadcaster.publish("update", {})

        assert delivered == 0
        assert sink.events == ["snapshot"]


class TestPublish:

    @pytest.mark.asyncio
    async def test_fans_out_to_every_subscriber(self):
        broadcaster, _ = make_broadcaster()
        sinks = [FakeSink() for _ in range(3)]
        for sink in sinks:
            await broadcaster.subscribe(sink)

        delivered = await broadcaster.publish("heartbeat", {"ts": 1})

        assert delivered == 3
        for sink in sinks:
            assert sink.messages[-1] == {"event": "heartbeat", "data": {"ts": 1}}

    @pytest.mark.asyncio
    async def test_failing_sink_is_dropped_and_others_unaffected(self):
        broadcaster, _ = make_broadcaster()
        good = FakeSink()
        flaky = FakeSink()
        await broadcaster.subscribe(good)
        await broadcaster.subscribe(flaky)

        async def broken(message):
            raise ConnectionError("reset")

        flaky.send = broken

        assert await broadcaster.publish("update", {"n": 1}) == 1
        assert broadcaster.subscriber_count == 1
        assert await broadcaster.publish("update", {"n": 2}) == 1
        assert [m["data"]["n"] for m in good.messages[1:]] == [1, 2]

    @pytest.mark.asyncio
    async def test_slow_sink_times_out(self):
        broadcaster, _ = make_broadcaster(send_timeout=0.01)
        sink = FakeSink()
        await broadcaster.subscribe(sink)
        sink.delay = 1.0

        assert await broadcaster.publish("update", {}) == 0
        assert broadcaster.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_no_subscribers(self):
        broadcaster, _ = make_broadcaster()
        assert await broadcaster.publish("update", {}) == 0


def test_encode_event_shape():
    assert json.loads(encode_event("snapshot", {"a": 1})) == {"event": "snapshot", "data": {"a": 1}}
