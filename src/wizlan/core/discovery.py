"""Broadcast sweeps and fan-out of unsolicited replies."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable

from wizlan.errors import RequestCancelledError
from wizlan.models import DiscoveryReply

from .correlator import Sender
from .signals import sleep_or_cancelled

logger = logging.getLogger(__name__)

ReplyCallback = Callable[[DiscoveryReply], None]


class DiscoveryListener:
    def __init__(self, callback: ReplyCallback, timeout: float) -> None:
        self.callback = callback
        self.deadline = time.monotonic() + timeout
        self.active = True

    def accepts(self, now: float) -> bool:
        return self.active and now < self.deadline


class DiscoveryBroadcaster:
    """Repeats a broadcast command for a fixed window and fans replies out.

    Each :meth:`discover` call owns one listener. Listeners of concurrent
    sweeps are independent and each only sees replies inside its own window.
    Deduplication is left to the callback.
    """

    def __init__(
        self,
        sender: Sender,
        broadcast_address: str,
        port: int,
        interval: float,
    ) -> None:
        self._sender = sender
        self._broadcast_address = broadcast_address
        self._port = port
        self._interval = interval
        self._lock = threading.Lock()
        self._listeners: list[DiscoveryListener] = []

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def register(self, callback: ReplyCallback, timeout: float) -> DiscoveryListener:
        listener = DiscoveryListener(callback, timeout)
        with self._lock:
            self._listeners.append(listener)
        return listener

    def deregister(self, listener: DiscoveryListener) -> None:
        listener.active = False
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def clear(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
            self._listeners.clear()
        for listener in listeners:
            listener.active = False

    async def discover(
        self,
        payload: bytes,
        callback: ReplyCallback,
        timeout: float,
        cancel: asyncio.Event | None = None,
    ) -> int:
        """Broadcast ``payload`` until ``timeout`` elapses. Returns the send count."""
        if cancel is not None and cancel.is_set():
            raise RequestCancelledError(self._broadcast_address)

        loop = asyncio.get_running_loop()
        listener = self.register(callback, timeout)
        expiry = loop.call_later(timeout, self.deregister, listener)
        interval = min(self._interval, timeout)
        sends = 0

        logger.info("Starting broadcast discovery for %.2fs", timeout)
        try:
            while True:
                self._sender(payload, self._broadcast_address, self._port)
                sends += 1

                remaining = listener.deadline - time.monotonic()
                if remaining <= 0:
                    break
                if await sleep_or_cancelled(min(interval, remaining), cancel):
                    raise RequestCancelledError(self._broadcast_address)
                if time.monotonic() >= listener.deadline:
                    break
        finally:
            expiry.cancel()
            self.deregister(listener)

        logger.info("Broadcast discovery completed after %d sends", sends)
        return sends

    def dispatch(self, reply: DiscoveryReply, now: float | None = None) -> int:
        """Deliver an unsolicited reply to every listener whose window is open."""
        now = time.monotonic() if now is None else now
        with self._lock:
            listeners = list(self._listeners)

        delivered = 0
        for listener in listeners:
            if not listener.accepts(now):
                continue
            try:
                listener.callback(reply)
            except Exception:
                logger.warning(
                    "Error in discovery callback for reply from %s",
                    reply.address,
                    exc_info=True,
                )
            delivered += 1
        return delivered
