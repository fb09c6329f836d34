"""In-memory device table shared by every device operation."""

from __future__ import annotations

import threading

from wizlan.models import DeviceRecord, MacAddress


class DeviceCache:
    """Concurrent map from hardware address to the last-known device record.

    Every method takes the internal lock, so callers never coordinate among
    themselves. Entries are only removed by :meth:`remove` or :meth:`clear`.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[MacAddress, DeviceRecord] = {}

    def get(self, mac: MacAddress) -> DeviceRecord | None:
        with self._lock:
            return self._records.get(mac)

    def set(self, mac: MacAddress, record: DeviceRecord) -> None:
        with self._lock:
            self._records[mac] = record

    def contains(self, mac: MacAddress) -> bool:
        with self._lock:
            return mac in self._records

    def remove(self, mac: MacAddress) -> bool:
        with self._lock:
            return self._records.pop(mac, None) is not None

    def get_all(self) -> list[DeviceRecord]:
        with self._lock:
            return list(self._records.values())

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def find_by_address(self, ip: str) -> DeviceRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.ip == ip:
                    return record
        return None

    def __contains__(self, mac: object) -> bool:
        return isinstance(mac, MacAddress) and self.contains(mac)

    def __len__(self) -> int:
        return self.count()
