"""Device identity, parameters and cached records."""

from __future__ import annotations

import string
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field, GetCoreSchemaHandler
from pydantic_core import core_schema

DEFAULT_PORT = 38899
ONLINE_WINDOW = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MacAddress:
    """Six-byte hardware address. Equality and hashing are byte-for-byte."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != 6:
            raise ValueError(f"MAC address must be 6 bytes, got {len(self.raw)}")

    @classmethod
    def parse(cls, value: str) -> MacAddress:
        cleaned = value.strip().replace(":", "").replace("-", "").replace(".", "")
        if len(cleaned) != 12 or not all(ch in string.hexdigits for ch in cleaned):
            raise ValueError(f"Invalid MAC address: {value!r}")
        return cls(bytes.fromhex(cleaned))

    def compact(self) -> str:
        return self.raw.hex()

    def __str__(self) -> str:
        return ":".join(f"{byte:02X}" for byte in self.raw)

    def __repr__(self) -> str:
        return f"MacAddress('{self}')"

    @classmethod
    def _coerce(cls, value: Any) -> MacAddress:
        if isinstance(value, cls):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        if isinstance(value, str):
            return cls.parse(value)
        raise ValueError(f"Cannot interpret {type(value).__name__} as a MAC address")

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source: Any, _handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._coerce,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


class DeviceParams(BaseModel):
    """The ``params``/``result`` object of a command envelope.

    Only the members wizlan reads or writes are declared; anything else a
    device reports is kept as an extra field and written back unchanged.
    """

    model_config = {"extra": "allow", "populate_by_name": True}

    mac: MacAddress | None = None
    state: bool | None = None
    brightness: int | None = Field(default=None, alias="dimming")
    temperature: int | None = Field(default=None, alias="temp")
    r: int | None = None
    g: int | None = None
    b: int | None = None
    c: int | None = None
    w: int | None = None
    scene_id: int | None = Field(default=None, alias="sceneId")
    speed: int | None = None
    rssi: int | None = None
    src: str | None = None
    home_id: int | None = Field(default=None, alias="homeId")
    room_id: int | None = Field(default=None, alias="roomId")
    module_name: str | None = Field(default=None, alias="moduleName")
    fw_version: str | None = Field(default=None, alias="fwVersion")
    success: bool | None = None

    # registration
    phone_mac: str | None = Field(default=None, alias="phoneMac")
    register_device: bool | None = Field(default=None, alias="register")
    phone_ip: str | None = Field(default=None, alias="phoneIp")
    id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def merge(self, other: DeviceParams) -> None:
        """Copy every member of ``other`` that is set onto this object."""
        for name, value in other:
            if value is not None:
                setattr(self, name, value)

    @property
    def rgb(self) -> tuple[int, int, int] | None:
        if self.r is None or self.g is None or self.b is None:
            return None
        return (self.r, self.g, self.b)


class DeviceRecord(BaseModel):
    """Last-known state of one device, keyed by its hardware address."""

    mac: MacAddress
    ip: str | None = None
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    name: str = ""
    params: DeviceParams = Field(default_factory=DeviceParams)
    last_seen: datetime = Field(default_factory=_utcnow)

    @property
    def is_on(self) -> bool:
        return bool(self.params.state)

    @property
    def brightness(self) -> int:
        return self.params.brightness or 0

    @property
    def module_name(self) -> str:
        return self.params.module_name or ""

    def is_online(self, max_age: timedelta = ONLINE_WINDOW) -> bool:
        return _utcnow() - self.last_seen < max_age

    def touch(self, now: datetime | None = None) -> None:
        """Advance last-seen. Never moves it backwards."""
        now = now or _utcnow()
        if now > self.last_seen:
            self.last_seen = now
