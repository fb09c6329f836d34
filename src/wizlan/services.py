"""Device operations built on top of the UDP transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from wizlan.config import Settings
from wizlan.core import UdpTransport, detect_local_ip, local_mac
from wizlan.errors import DeviceReplyError, MalformedReplyError, MissingAddressError
from wizlan.models import (
    CommandEnvelope,
    DeviceParams,
    DeviceRecord,
    DiscoveryReply,
    MacAddress,
    Method,
    ScanMode,
)
from wizlan.storage import DeviceCache

logger = logging.getLogger(__name__)

Target = DeviceRecord | str
DeviceCallback = Callable[[DeviceRecord], None]

# pre-registration id sent by the vendor app
REGISTRATION_ID = "12"


def _check_range(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")


class DeviceService:
    """Queries and commands devices, keeping ``cache`` up to date.

    Transport failures propagate unchanged; an operation either returns the
    updated record or raises.
    """

    def __init__(
        self,
        transport: UdpTransport,
        cache: DeviceCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.transport = transport
        self.cache = cache if cache is not None else DeviceCache()
        self.settings = settings or Settings()

    # -- queries -----------------------------------------------------------

    async def query_state(
        self, target: Target, cancel: asyncio.Event | None = None
    ) -> DeviceRecord:
        return await self._query(Method.GET_PILOT, target, cancel)

    async def query_system_config(
        self, target: Target, cancel: asyncio.Event | None = None
    ) -> DeviceRecord:
        return await self._query(Method.GET_SYSTEM_CONFIG, target, cancel)

    async def query_model_config(
        self, target: Target, cancel: asyncio.Event | None = None
    ) -> DeviceRecord:
        return await self._query(Method.GET_MODEL_CONFIG, target, cancel)

    # -- commands ----------------------------------------------------------

    async def set_state(
        self,
        record: DeviceRecord,
        cancel: asyncio.Event | None = None,
        **params: Any,
    ) -> DeviceRecord:
        """Send ``setPilot`` with only ``params`` and apply them to ``record``.

        Parameters may be given by attribute name (``brightness``) or by wire
        name (``dimming``). Only the changed values are sent, so a command
        delivered twice by a retry leaves the device in the same state.
        """
        address, port, _ = self._resolve(record)
        changes = DeviceParams.model_validate(params)
        envelope = CommandEnvelope(method=Method.SET_PILOT, params=changes)

        logger.info("Setting %s on %s", changes.to_wire(), record.mac)
        reply = await self._exchange(envelope, address, port, cancel)
        if reply.result is not None and reply.result.success is False:
            raise DeviceReplyError(reply.method, None, "device reported success=false")

        record.params.merge(changes)
        record.touch()
        self.cache.set(record.mac, record)
        return record

    async def turn_on(
        self, record: DeviceRecord, cancel: asyncio.Event | None = None
    ) -> DeviceRecord:
        return await self.set_state(record, cancel, state=True)

    async def turn_off(
        self, record: DeviceRecord, cancel: asyncio.Event | None = None
    ) -> DeviceRecord:
        return await self.set_state(record, cancel, state=False)

    async def set_brightness(
        self, record: DeviceRecord, brightness: int, cancel: asyncio.Event | None = None
    ) -> DeviceRecord:
        _check_range("brightness", brightness, 0, 100)
        return await self.set_state(record, cancel, brightness=brightness)

    async def set_color(
        self,
        record: DeviceRecord,
        r: int,
        g: int,
        b: int,
        cancel: asyncio.Event | None = None,
    ) -> DeviceRecord:
        for name, value in (("r", r), ("g", g), ("b", b)):
            _check_range(name, value, 0, 255)
        await self.set_state(record, cancel, r=r, g=g, b=b)
        # an explicit colour puts the device in manual mode
        record.params.scene_id = 0
        record.params.temperature = None
        return record

    async def set_temperature(
        self, record: DeviceRecord, kelvin: int, cancel: asyncio.Event | None = None
    ) -> DeviceRecord:
        _check_range("temperature", kelvin, 1000, 10000)
        await self.set_state(record, cancel, temperature=kelvin)
        record.params.scene_id = 0
        record.params.r = record.params.g = record.params.b = None
        return record

    async def set_scene(
        self, record: DeviceRecord, scene_id: int, cancel: asyncio.Event | None = None
    ) -> DeviceRecord:
        return await self.set_state(record, cancel, scene_id=scene_id)

    # -- discovery ---------------------------------------------------------

    def build_scan_command(
        self,
        mode: ScanMode,
        local_ip: str | None = None,
        local_mac_address: MacAddress | None = None,
    ) -> CommandEnvelope:
        if mode is ScanMode.REGISTRATION:
            phone_mac = local_mac_address or local_mac()
            return CommandEnvelope.build(
                Method.REGISTRATION,
                phoneMac=phone_mac.compact(),
                register=False,
                phoneIp=local_ip or detect_local_ip(),
                id=REGISTRATION_ID,
            )
        if mode is ScanMode.GET_PILOT:
            return CommandEnvelope.build(Method.GET_PILOT)
        return CommandEnvelope.build(Method.GET_SYSTEM_CONFIG)

    async def discover(
        self,
        mode: ScanMode | str | None = None,
        timeout: float | None = None,
        on_device: DeviceCallback | None = None,
        cancel: asyncio.Event | None = None,
        local_ip: str | None = None,
        local_mac: MacAddress | None = None,
    ) -> list[DeviceRecord]:
        """Broadcast a scan command and collect every device that answers.

        Each device appears once in the result even if it answered several
        broadcasts. ``on_device`` is called once per newly seen device.
        """
        scan_mode = ScanMode(mode) if mode else self.settings.discovery.mode
        command = self.build_scan_command(scan_mode, local_ip, local_mac)
        found: dict[MacAddress, DeviceRecord] = {}

        def handle(reply: DiscoveryReply) -> None:
            result = reply.envelope.result
            if result is None or result.mac is None:
                return
            if result.mac in found:
                return
            record = self._upsert(result, reply.address, reply.port, None)
            record.touch(reply.received_at)
            found[record.mac] = record
            logger.debug("Discovered %s at %s", record.mac, reply.address)
            if on_device is not None:
                on_device(record)

        logger.info("Discovering devices with %s", scan_mode.value)
        await self.transport.discover(command, handle, timeout=timeout, cancel=cancel)
        logger.info("Discovery completed, found %d device(s)", len(found))
        return list(found.values())

    async def get_device(
        self,
        mac: MacAddress | str,
        force_scan: bool = False,
        scan_timeout: float = 2.0,
        cancel: asyncio.Event | None = None,
    ) -> DeviceRecord | None:
        """Return the cached record for ``mac``, scanning the network on a miss."""
        key = mac if isinstance(mac, MacAddress) else MacAddress.parse(mac)
        if not force_scan:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Returning cached device %s", key)
                return cached

        logger.info("Device %s not cached, scanning", key)
        await self.discover(timeout=scan_timeout, cancel=cancel)

        record = self.cache.get(key)
        if record is None:
            logger.warning("Device not found: %s", key)
        return record

    # -- helpers -----------------------------------------------------------

    def _resolve(self, target: Target) -> tuple[str, int, DeviceRecord | None]:
        if isinstance(target, DeviceRecord):
            if not target.ip:
                raise MissingAddressError("IP address")
            return target.ip, target.port, target
        if not target:
            raise MissingAddressError("IP address")
        return target, self.transport.settings.port, None

    async def _exchange(
        self,
        envelope: CommandEnvelope,
        address: str,
        port: int,
        cancel: asyncio.Event | None,
    ) -> CommandEnvelope:
        text = await self.transport.send(envelope, address, port, cancel=cancel)
        reply = CommandEnvelope.parse(text)
        reply.raise_for_error()
        return reply

    async def _query(
        self, method: Method, target: Target, cancel: asyncio.Event | None
    ) -> DeviceRecord:
        address, port, record = self._resolve(target)
        logger.info("Sending %s to %s", method.value, address)
        reply = await self._exchange(CommandEnvelope.build(method), address, port, cancel)
        if reply.result is None:
            raise MalformedReplyError(f"{method.value} reply from {address} has no result")
        updated = self._upsert(reply.result, address, port, record)
        updated.touch()
        return updated

    def _upsert(
        self,
        result: DeviceParams,
        address: str,
        port: int,
        fallback: DeviceRecord | None,
    ) -> DeviceRecord:
        if result.mac is not None:
            record = self.cache.get(result.mac)
            if record is None:
                if fallback is not None and fallback.mac == result.mac:
                    record = fallback
                else:
                    record = DeviceRecord(mac=result.mac, ip=address, port=port)
        elif fallback is not None:
            record = self.cache.get(fallback.mac) or fallback
        else:
            found = self.cache.find_by_address(address)
            if found is None:
                raise MalformedReplyError(f"Reply from {address} does not identify the device")
            record = found

        record.ip = address
        record.port = port
        record.params.merge(result)
        self.cache.set(record.mac, record)
        return record
