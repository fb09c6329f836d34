from __future__ import annotations

import logging
import socket
import uuid

from wizlan.models import MacAddress

logger = logging.getLogger(__name__)


def detect_local_ip() -> str:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            # no packet is sent, connect() only selects the outbound interface
            sock.connect(("8.8.8.8", 80))
            local_ip = sock.getsockname()[0]
        logger.debug("Detected local address: %s", local_ip)
        return str(local_ip)
    except OSError as exc:
        raise RuntimeError("Could not detect local IP address") from exc


def local_mac() -> MacAddress:
    """Hardware address of this host, as reported by :func:`uuid.getnode`."""
    return MacAddress(uuid.getnode().to_bytes(6, "big"))
