"""wizlan - discover and control WiZ-style lights over JSON-over-UDP."""

from __future__ import annotations

from importlib.metadata import version

from .config import DiscoverySettings, Settings, TransportSettings, get_settings
from .core import RetryPolicy, UdpTransport
from .errors import WizError
from .models import CommandEnvelope, DeviceParams, DeviceRecord, MacAddress, Method, ScanMode
from .services import DeviceService
from .storage import DeviceCache

__all__ = [
    "CommandEnvelope",
    "DeviceCache",
    "DeviceParams",
    "DeviceRecord",
    "DeviceService",
    "DiscoverySettings",
    "MacAddress",
    "Method",
    "RetryPolicy",
    "ScanMode",
    "Settings",
    "TransportSettings",
    "UdpTransport",
    "WizError",
    "__version__",
    "get_settings",
]

__version__ = version("wizlan")
