from __future__ import annotations

from dataclasses import dataclass, field

from wizlan.models import MacAddress


@dataclass
class Redactor:
    """Masks addresses in CLI output so it can be pasted into bug reports."""

    enabled: bool = True
    _mac_map: dict[MacAddress, int] = field(default_factory=dict)
    _mac_counter: int = 0

    def redact_ip(self, ip: str | None) -> str:
        if ip is None:
            return ""
        if not self.enabled:
            return ip
        parts = ip.split(".")
        if len(parts) == 4 and all(part.isdigit() for part in parts):
            return f"x.x.x.{parts[3]}"
        return ip

    def redact_mac(self, mac: MacAddress) -> str:
        if not self.enabled:
            return str(mac)
        # keep the vendor prefix, it tells bulb families apart
        prefix = ":".join(str(mac).split(":")[:3])
        counter = self._mac_map.get(mac)
        if counter is None:
            self._mac_counter += 1
            counter = self._mac_counter
            self._mac_map[mac] = counter
        return f"{prefix}:xx:xx:{counter:02d}"

    def redact_firmware(self, version: str | None) -> str:
        if version is None:
            return ""
        if not self.enabled or "." not in version:
            return version
        major = version.split(".", 1)[0]
        return f"{major}.x"
