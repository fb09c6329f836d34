"""Tests for broadcast sweeps and listener fan-out."""

from __future__ import annotations

import asyncio
import time

import pytest

from wizlan.core import DiscoveryBroadcaster
from wizlan.errors import RequestCancelledError
from wizlan.models import CommandEnvelope, DiscoveryReply


def _reply(mac: str = "aabbccddeeff", address: str = "10.0.0.5") -> DiscoveryReply:
    text = f'{{"method":"getSystemConfig","result":{{"mac":"{mac}"}}}}'
    return DiscoveryReply(
        text=text, envelope=CommandEnvelope.parse(text), address=address, port=38899
    )


class RecordingSender:
    def __init__(self) -> None:
        self.sent: list[tuple[bytes, str, int]] = []

    def __call__(self, payload: bytes, address: str, port: int) -> None:
        self.sent.append((payload, address, port))


def _broadcaster(sender: RecordingSender, interval: float = 0.05) -> DiscoveryBroadcaster:
    return DiscoveryBroadcaster(sender, "255.255.255.255", 38899, interval)


def test_discover_resends_until_deadline():
    sender = RecordingSender()
    broadcaster = _broadcaster(sender)

    started = time.monotonic()
    sends = asyncio.run(broadcaster.discover(b"scan", lambda reply: None, 0.22))
    elapsed = time.monotonic() - started

    assert 0.2 <= elapsed < 1.0
    assert sends == len(sender.sent)
    assert 3 <= sends <= 6
    assert {address for _, address, _ in sender.sent} == {"255.255.255.255"}
    assert broadcaster.listener_count == 0


def test_replies_delivered_only_inside_window():
    async def scenario():
        broadcaster = _broadcaster(RecordingSender())
        received: list[DiscoveryReply] = []
        task = asyncio.create_task(broadcaster.discover(b"scan", received.append, 0.15))
        await asyncio.sleep(0.05)
        during = broadcaster.dispatch(_reply())
        await task
        after = broadcaster.dispatch(_reply())
        return received, during, after

    received, during, after = asyncio.run(scenario())
    assert during == 1
    assert after == 0
    assert len(received) == 1


def test_listener_rejects_reply_past_its_deadline():
    async def scenario():
        broadcaster = _broadcaster(RecordingSender())
        received: list[DiscoveryReply] = []
        task = asyncio.create_task(broadcaster.discover(b"scan", received.append, 0.2))
        await asyncio.sleep(0.01)
        delivered = broadcaster.dispatch(_reply(), now=time.monotonic() + 10)
        await task
        return received, delivered

    received, delivered = asyncio.run(scenario())
    assert delivered == 0
    assert received == []


def test_concurrent_sweeps_have_independent_windows():
    async def scenario():
        broadcaster = _broadcaster(RecordingSender())
        short: list[DiscoveryReply] = []
        long: list[DiscoveryReply] = []
        short_task = asyncio.create_task(broadcaster.discover(b"scan", short.append, 0.1))
        long_task = asyncio.create_task(broadcaster.discover(b"scan", long.append, 0.4))
        await asyncio.sleep(0.02)
        assert broadcaster.listener_count == 2
        broadcaster.dispatch(_reply("aabbccddee01"))
        await short_task
        broadcaster.dispatch(_reply("aabbccddee02"))
        await long_task
        return short, long

    short, long = asyncio.run(scenario())
    assert [reply.envelope.result.mac.compact() for reply in short] == ["aabbccddee01"]
    assert [reply.envelope.result.mac.compact() for reply in long] == [
        "aabbccddee01",
        "aabbccddee02",
    ]


def test_failing_callback_does_not_affect_other_listeners():
    async def scenario():
        broadcaster = _broadcaster(RecordingSender())
        received: list[DiscoveryReply] = []

        def explode(reply: DiscoveryReply) -> None:
            raise RuntimeError("callback failed")

        first = asyncio.create_task(broadcaster.discover(b"scan", explode, 0.1))
        second = asyncio.create_task(broadcaster.discover(b"scan", received.append, 0.1))
        await asyncio.sleep(0.02)
        delivered = broadcaster.dispatch(_reply())
        await asyncio.gather(first, second)
        return received, delivered

    received, delivered = asyncio.run(scenario())
    assert delivered == 2
    assert len(received) == 1


def test_cancel_stops_sweep_and_removes_listener():
    async def scenario():
        broadcaster = _broadcaster(RecordingSender())
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)
        with pytest.raises(RequestCancelledError):
            await broadcaster.discover(b"scan", lambda reply: None, 5.0, cancel)
        return broadcaster

    started = time.monotonic()
    broadcaster = asyncio.run(scenario())
    assert time.monotonic() - started < 1.0
    assert broadcaster.listener_count == 0


def test_clear_deactivates_listeners():
    async def scenario():
        broadcaster = _broadcaster(RecordingSender())
        received: list[DiscoveryReply] = []
        task = asyncio.create_task(broadcaster.discover(b"scan", received.append, 0.1))
        await asyncio.sleep(0.01)
        broadcaster.clear()
        delivered = broadcaster.dispatch(_reply())
        await task
        return received, delivered

    received, delivered = asyncio.run(scenario())
    assert delivered == 0
    assert received == []
