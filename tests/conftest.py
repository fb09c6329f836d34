from __future__ import annotations

import socket
import threading
from collections.abc import Callable, Iterator

import pytest

from wizlan.config import CONFIG_ENV_VAR, get_settings

Handler = Callable[[bytes], list[bytes]]


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class UdpResponder:
    """Blocking UDP peer on a loopback address served from a background thread."""

    def __init__(self, handler: Handler, host: str = "127.0.0.1") -> None:
        self.handler = handler
        self.requests: list[bytes] = []
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.bind((host, 0))
        self._sock.settimeout(0.05)
        self.host: str = host
        self.port: int = self._sock.getsockname()[1]
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=1.0)
        self._sock.close()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                data, addr = self._sock.recvfrom(65535)
            except TimeoutError:
                continue
            except OSError:
                break
            self.requests.append(data)
            for reply in self.handler(data):
                self._sock.sendto(reply, addr)


@pytest.fixture
def udp_responder() -> Iterator[Callable[..., UdpResponder]]:
    started: list[UdpResponder] = []

    def _start(handler: Handler, host: str = "127.0.0.1") -> UdpResponder:
        responder = UdpResponder(handler, host)
        responder.start()
        started.append(responder)
        return responder

    yield _start

    for responder in started:
        responder.stop()
