"""The single UDP endpoint shared by every device exchange."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from datetime import datetime, timezone
from types import TracebackType

from wizlan.config import DiscoverySettings, TransportSettings
from wizlan.errors import MalformedReplyError, MissingAddressError, TransportClosedError
from wizlan.models import CommandEnvelope, DiscoveryReply, decode_payload
from wizlan.utils.logging import WireLog

from .correlator import RequestCorrelator
from .discovery import DiscoveryBroadcaster, ReplyCallback
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

Command = CommandEnvelope | str | bytes
# payload, source address, wall-clock and monotonic receive times
_Datagram = tuple[bytes, tuple[str, int], datetime, float]
_Inbound = _Datagram | Exception


def _to_payload(command: Command) -> bytes:
    if isinstance(command, CommandEnvelope):
        return command.to_bytes()
    if isinstance(command, str):
        return command.encode("utf-8")
    return bytes(command)


def _describe(command: Command) -> str:
    if isinstance(command, CommandEnvelope):
        return command.method
    return "command"


class _QueueProtocol(asyncio.DatagramProtocol):
    def __init__(self, queue: asyncio.Queue[_Inbound]) -> None:
        self._queue = queue

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._queue.put_nowait(
            (data, (addr[0], addr[1]), datetime.now(timezone.utc), time.monotonic())
        )

    def error_received(self, exc: Exception) -> None:
        self._queue.put_nowait(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        logger.debug("UDP endpoint closed")


class UdpTransport:
    """Owns one bound UDP socket and multiplexes every exchange over it.

    A background task drains the socket for the lifetime of the transport and
    routes each datagram either to the request correlator (a unicast request
    to that address is waiting) or to the discovery broadcaster.
    """

    def __init__(
        self,
        settings: TransportSettings | None = None,
        discovery: DiscoverySettings | None = None,
        wire_log: WireLog | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._settings = settings or TransportSettings()
        self._discovery_settings = discovery or DiscoverySettings()
        self._wire_log = wire_log or WireLog()
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=self._settings.retries,
            base_delay=self._settings.retry_base_delay,
            max_delay=self._settings.retry_max_delay,
        )
        self.correlator = RequestCorrelator(self.send_raw)
        self.broadcaster = DiscoveryBroadcaster(
            self.send_raw,
            self._discovery_settings.broadcast_address,
            self._settings.port,
            self._discovery_settings.interval,
        )

        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._closed = False
        self._endpoint: asyncio.DatagramTransport | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._local_address: tuple[str, int] | None = None

    @property
    def settings(self) -> TransportSettings:
        return self._settings

    @property
    def discovery_settings(self) -> DiscoverySettings:
        return self._discovery_settings

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def local_address(self) -> tuple[str, int] | None:
        return self._local_address

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransportClosedError()

    async def initialize(self, bind_address: str | None = None) -> None:
        """Bind the socket and start the receive loop. Safe to call repeatedly."""
        self._ensure_open()
        async with self._init_lock:
            if self._initialized:
                return
            self._ensure_open()

            loop = asyncio.get_running_loop()
            host = bind_address or self._settings.bind_address
            queue: asyncio.Queue[_Inbound] = asyncio.Queue()
            endpoint, _ = await loop.create_datagram_endpoint(
                lambda: _QueueProtocol(queue),
                local_addr=(host, self._settings.bind_port),
                allow_broadcast=True,
            )
            sockname = endpoint.get_extra_info("sockname")
            self._endpoint = endpoint
            self._local_address = (sockname[0], sockname[1])
            self._receive_task = loop.create_task(
                self._receive_loop(queue), name="wizlan-receive-loop"
            )
            self._initialized = True

            logger.info("UDP transport initialized on %s:%d", sockname[0], sockname[1])

    def send_raw(self, payload: bytes, address: str, port: int) -> None:
        """Fire-and-forget datagram send."""
        self._ensure_open()
        if self._endpoint is None:
            raise RuntimeError("UDP transport is not initialized")
        self._endpoint.sendto(payload, (address, port))
        self._wire_log.log_output(
            payload.decode("utf-8", errors="replace"), self._local_host(), address
        )

    async def send(
        self,
        command: Command,
        address: str | None,
        port: int | None = None,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> str:
        """Send a unicast command and return the text of the matching reply.

        Transient failures (timeouts, socket errors, empty replies) are retried
        according to :attr:`retry_policy`.
        """
        if not address:
            raise MissingAddressError()
        self._ensure_open()
        if not self._initialized:
            await self.initialize()

        payload = _to_payload(command)
        target_port = port or self._settings.port
        wait = timeout if timeout is not None else self._settings.timeout

        return await self.retry_policy.run(
            lambda: self.correlator.send(payload, address, target_port, wait, cancel),
            cancel,
            description=f"{_describe(command)} to {address}",
        )

    async def discover(
        self,
        command: Command,
        on_reply: ReplyCallback,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> None:
        """Broadcast ``command`` for ``timeout`` seconds, passing replies to ``on_reply``."""
        self._ensure_open()
        if not self._initialized:
            await self.initialize()

        await self.broadcaster.discover(
            _to_payload(command),
            on_reply,
            timeout if timeout is not None else self._discovery_settings.timeout,
            cancel,
        )

    async def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug("Shutting down UDP transport")

        if self._receive_task is not None:
            self._receive_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._receive_task
            self._receive_task = None

        self.correlator.close_all()
        self.broadcaster.clear()

        if self._endpoint is not None:
            self._endpoint.close()
            self._endpoint = None

        logger.info("UDP transport shut down")

    async def __aenter__(self) -> UdpTransport:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()

    def _local_host(self) -> str | None:
        return self._local_address[0] if self._local_address else None

    async def _receive_loop(self, queue: asyncio.Queue[_Inbound]) -> None:
        logger.debug("UDP receive loop started")
        while True:
            item = await queue.get()
            if isinstance(item, Exception):
                logger.error("Socket error in UDP receive loop: %s", item)
                continue
            data, (host, port), received_at, stamp = item
            try:
                self._route(data, host, port, received_at, stamp)
            except Exception:
                logger.exception("Error routing datagram from %s", host)

    def _route(
        self,
        data: bytes,
        host: str,
        port: int,
        received_at: datetime | None = None,
        stamp: float | None = None,
    ) -> None:
        """Hand a datagram to the waiting request or the open discovery windows.

        ``received_at`` and ``stamp`` are taken when the socket delivered the
        datagram so queueing delay does not shift the discovery window.
        """
        try:
            text = decode_payload(data)
        except MalformedReplyError as exc:
            logger.debug("Dropping datagram from %s: %s", host, exc)
            return

        self._wire_log.log_input(text, self._local_host(), host)

        if not text:
            # an empty answer to a waiting request is retried by the caller
            if not self.correlator.resolve(host, text):
                logger.debug("Ignoring empty datagram from %s", host)
            return

        try:
            envelope = CommandEnvelope.parse(text)
        except MalformedReplyError as exc:
            logger.debug("Ignoring non-protocol datagram from %s: %s", host, exc)
            return

        if self.correlator.resolve(host, text):
            return

        reply = DiscoveryReply(text=text, envelope=envelope, address=host, port=port)
        if received_at is not None:
            reply.received_at = received_at
        self.broadcaster.dispatch(reply, stamp)
