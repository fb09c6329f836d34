"""Correlation of inbound datagrams with outstanding unicast requests.

The protocol does not echo a request id, so the only thing a reply can be
matched on is the address it came from. When several requests to the same
address are outstanding, the oldest one receives the next reply from that
address, even if the device was answering a later request. Requests to
different addresses never interfere.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections import OrderedDict
from collections.abc import Callable
from enum import Enum

from wizlan.errors import (
    EmptyReplyError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportClosedError,
)

logger = logging.getLogger(__name__)

Sender = Callable[[bytes, str, int], None]


class PendingState(Enum):
    CREATED = "created"
    WAITING = "waiting"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    CLOSED = "closed"


class PendingRequest:
    """One outstanding unicast request.

    Leaves ``WAITING`` exactly once; whichever of reply, deadline or
    cancellation happens first wins and the others become no-ops.
    """

    def __init__(
        self, address: str, timeout: float, loop: asyncio.AbstractEventLoop
    ) -> None:
        self.request_id = uuid.uuid4().hex
        self.address = address
        self.timeout = timeout
        self.deadline = loop.time() + timeout
        self.future: asyncio.Future[str] = loop.create_future()
        self.state = PendingState.CREATED

    def start(self) -> None:
        if self.state is PendingState.CREATED:
            self.state = PendingState.WAITING

    @property
    def waiting(self) -> bool:
        return self.state is PendingState.WAITING and not self.future.done()

    def _finish(
        self,
        state: PendingState,
        result: str | None = None,
        error: BaseException | None = None,
    ) -> bool:
        if not self.waiting:
            return False
        self.state = state
        if error is not None:
            self.future.set_exception(error)
        else:
            self.future.set_result(result or "")
        return True

    def complete(self, text: str) -> bool:
        return self._finish(PendingState.COMPLETED, result=text)

    def expire(self) -> bool:
        return self._finish(
            PendingState.TIMED_OUT,
            error=RequestTimeoutError(self.address, self.timeout),
        )

    def cancel(self) -> bool:
        return self._finish(
            PendingState.CANCELLED, error=RequestCancelledError(self.address)
        )

    def close(self) -> bool:
        return self._finish(PendingState.CLOSED, error=TransportClosedError())

    def __repr__(self) -> str:
        return (
            f"PendingRequest(id={self.request_id[:8]}, address={self.address}, "
            f"state={self.state.value})"
        )


class RequestCorrelator:
    def __init__(self, sender: Sender) -> None:
        self._sender = sender
        self._lock = threading.Lock()
        self._pending: OrderedDict[str, PendingRequest] = OrderedDict()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def register(self, address: str, timeout: float) -> PendingRequest:
        pending = PendingRequest(address, timeout, asyncio.get_running_loop())
        with self._lock:
            self._pending[pending.request_id] = pending
        pending.start()
        return pending

    def discard(self, pending: PendingRequest) -> None:
        with self._lock:
            self._pending.pop(pending.request_id, None)

    def _match_locked(self, address: str) -> PendingRequest | None:
        # insertion order is registration order
        for pending in self._pending.values():
            if pending.address == address and pending.waiting:
                return pending
        return None

    def match(self, address: str) -> PendingRequest | None:
        """Return the request a reply from ``address`` would be routed to."""
        with self._lock:
            return self._match_locked(address)

    def resolve(self, address: str, text: str) -> bool:
        """Hand a reply to the oldest waiting request for ``address``."""
        with self._lock:
            pending = self._match_locked(address)
            if pending is None:
                return False
            del self._pending[pending.request_id]
        logger.debug("Reply from %s matched request %s", address, pending.request_id)
        return pending.complete(text)

    async def send(
        self,
        payload: bytes,
        address: str,
        port: int,
        timeout: float,
        cancel: asyncio.Event | None = None,
    ) -> str:
        """Send one datagram and wait for the matching reply.

        Raises:
            RequestTimeoutError: no reply before ``timeout`` elapsed
            RequestCancelledError: ``cancel`` fired first
            EmptyReplyError: the matching reply carried no data
            TransportClosedError: the transport shut down while waiting
        """
        if cancel is not None and cancel.is_set():
            raise RequestCancelledError(address)

        loop = asyncio.get_running_loop()
        pending = self.register(address, timeout)
        # the deadline is a cancellation that fires on its own
        deadline = loop.call_later(timeout, pending.expire)
        watcher = None
        if cancel is not None:
            watcher = loop.create_task(self._watch(cancel, pending))

        try:
            self._sender(payload, address, port)
            text = await pending.future
        finally:
            deadline.cancel()
            if watcher is not None:
                watcher.cancel()
            self.discard(pending)

        if not text:
            raise EmptyReplyError(address)
        return text

    @staticmethod
    async def _watch(cancel: asyncio.Event, pending: PendingRequest) -> None:
        await cancel.wait()
        pending.cancel()

    def close_all(self) -> int:
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        closed = sum(1 for request in pending if request.close())
        if closed:
            logger.debug("Failed %d pending requests on shutdown", closed)
        return closed
