"""Data models for wizlan."""

from wizlan.models.command import CommandEnvelope, Method, ScanMode, decode_payload
from wizlan.models.device import (
    DEFAULT_PORT,
    DeviceParams,
    DeviceRecord,
    MacAddress,
)
from wizlan.models.discovery import DiscoveryReply

__all__ = [
    "DEFAULT_PORT",
    "CommandEnvelope",
    "DeviceParams",
    "DeviceRecord",
    "DiscoveryReply",
    "MacAddress",
    "Method",
    "ScanMode",
    "decode_payload",
]
