from __future__ import annotations

from .cache import DeviceCache

__all__ = ["DeviceCache"]
