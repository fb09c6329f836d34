"""Mock WiZ-style device for development and testing."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

from wizlan.errors import MalformedReplyError
from wizlan.models import DEFAULT_PORT, CommandEnvelope, MacAddress, Method

logger = logging.getLogger(__name__)

METHOD_NOT_FOUND = -32601


class _MockProtocol(asyncio.DatagramProtocol):
    def __init__(self, device: MockWizDevice) -> None:
        self._device = device
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._device.handle_datagram(data, addr)


@dataclass
class MockWizDevice:
    """Answers the JSON-over-UDP protocol the way a single bulb does."""

    mac_address: str = "AA:BB:CC:DD:EE:FF"
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    module_name: str = "ESP01_SHRGB1C_31"
    fw_version: str = "1.22.0"
    home_id: int = 1
    room_id: int = 1

    state: bool = False
    brightness: int = 100
    temperature: int = 2700
    rgb: tuple[int, int, int] | None = None
    scene_id: int = 0
    speed: int = 100
    rssi: int = -55

    reply_delay: float = 0.0
    drop_first: int = 0

    mac: MacAddress = field(init=False)
    received: list[str] = field(default_factory=list, repr=False)
    _endpoint: asyncio.DatagramTransport | None = field(default=None, repr=False)
    _tasks: set[asyncio.Task[None]] = field(default_factory=set, repr=False)

    def __post_init__(self) -> None:
        self.mac = MacAddress.parse(self.mac_address)

    @property
    def bound_port(self) -> int:
        if self._endpoint is None:
            return self.port
        return int(self._endpoint.get_extra_info("sockname")[1])

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._endpoint, _ = await loop.create_datagram_endpoint(
            lambda: _MockProtocol(self),
            local_addr=(self.host, self.port),
            allow_broadcast=True,
        )
        logger.info("Mock device %s listening on port %d", self.mac, self.bound_port)

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._endpoint is not None:
            self._endpoint.close()
            self._endpoint = None
            logger.info("Mock device %s stopped", self.mac)

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    def handle_datagram(self, data: bytes, addr: tuple[str, int]) -> None:
        try:
            request = CommandEnvelope.parse(data)
        except MalformedReplyError:
            logger.debug("Ignoring non-protocol datagram from %s", addr[0])
            return

        self.received.append(request.method)
        if len(self.received) <= self.drop_first:
            logger.debug("Dropping request #%d (%s)", len(self.received), request.method)
            return

        reply = json.dumps(self.respond(request), separators=(",", ":")).encode()
        if self.reply_delay > 0:
            task = asyncio.get_running_loop().create_task(self._reply_later(reply, addr))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            self._send(reply, addr)

    async def _reply_later(self, reply: bytes, addr: tuple[str, int]) -> None:
        await asyncio.sleep(self.reply_delay)
        self._send(reply, addr)

    def _send(self, reply: bytes, addr: tuple[str, int]) -> None:
        if self._endpoint is not None:
            self._endpoint.sendto(reply, addr)

    def respond(self, request: CommandEnvelope) -> dict[str, Any]:
        """Build the reply document for ``request``, applying any state change."""
        method = request.method
        if method == Method.GET_PILOT:
            return self._result(method, self._pilot())
        if method == Method.SET_PILOT:
            self._apply(request)
            return self._result(method, {"success": True})
        if method == Method.GET_SYSTEM_CONFIG:
            return self._result(
                method,
                {
                    "mac": self.mac.compact(),
                    "homeId": self.home_id,
                    "roomId": self.room_id,
                    "moduleName": self.module_name,
                    "fwVersion": self.fw_version,
                },
            )
        if method == Method.GET_MODEL_CONFIG:
            return self._result(method, {"cctRange": [2200, 6500], "fanSpeed": 0})
        if method == Method.REGISTRATION:
            return self._result(method, {"mac": self.mac.compact(), "success": True})

        return {
            "method": method,
            "env": "pro",
            "error": {"code": METHOD_NOT_FOUND, "message": "Method not found"},
        }

    def _result(self, method: str, result: dict[str, Any]) -> dict[str, Any]:
        return {"method": method, "env": "pro", "result": result}

    def _pilot(self) -> dict[str, Any]:
        pilot: dict[str, Any] = {
            "mac": self.mac.compact(),
            "rssi": self.rssi,
            "src": "",
            "state": self.state,
            "sceneId": self.scene_id,
            "dimming": self.brightness,
        }
        if self.rgb is not None:
            pilot.update(r=self.rgb[0], g=self.rgb[1], b=self.rgb[2])
        else:
            pilot["temp"] = self.temperature
        if self.scene_id:
            pilot["speed"] = self.speed
        return pilot

    def _apply(self, request: CommandEnvelope) -> None:
        params = request.params
        if params.state is not None:
            self.state = params.state
        if params.brightness is not None:
            self.brightness = params.brightness
        if params.temperature is not None:
            self.temperature = params.temperature
            self.rgb = None
            self.scene_id = 0
        if params.rgb is not None:
            self.rgb = params.rgb
            self.scene_id = 0
        if params.scene_id is not None:
            self.scene_id = params.scene_id
        if params.speed is not None:
            self.speed = params.speed
        logger.info("Mock device %s state changed: %s", self.mac, params.to_wire())


async def run_mock_device(
    port: int = DEFAULT_PORT,
    mac_address: str = "AA:BB:CC:DD:EE:FF",
    host: str = "0.0.0.0",
) -> None:
    """Run a mock device until interrupted."""
    device = MockWizDevice(mac_address=mac_address, host=host, port=port)
    await device.run_forever()
