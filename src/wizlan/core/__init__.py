from __future__ import annotations

from .correlator import PendingRequest, PendingState, RequestCorrelator
from .discovery import DiscoveryBroadcaster, DiscoveryListener
from .network import detect_local_ip, local_mac
from .retry import RetryPolicy
from .transport import UdpTransport

__all__ = [
    "DiscoveryBroadcaster",
    "DiscoveryListener",
    "PendingRequest",
    "PendingState",
    "RequestCorrelator",
    "RetryPolicy",
    "UdpTransport",
    "detect_local_ip",
    "local_mac",
]
