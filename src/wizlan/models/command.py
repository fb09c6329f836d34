"""Command envelope exchanged with devices, one per datagram."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from wizlan.errors import DeviceReplyError, MalformedReplyError

from .device import DeviceParams


class Method(StrEnum):
    GET_PILOT = "getPilot"
    SET_PILOT = "setPilot"
    GET_SYSTEM_CONFIG = "getSystemConfig"
    GET_MODEL_CONFIG = "getModelConfig"
    REGISTRATION = "registration"

    # pushed by devices, never sent by us
    SYNC_PILOT = "syncPilot"
    FIRST_BEAT = "firstBeat"


class ScanMode(StrEnum):
    """Command used to sweep the network during discovery."""

    GET_PILOT = "getPilot"
    GET_SYSTEM_CONFIG = "getSystemConfig"
    REGISTRATION = "registration"


def decode_payload(data: bytes | str) -> str:
    """Decode a datagram payload, dropping NUL padding some firmwares append."""
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedReplyError(f"Payload is not UTF-8: {exc}") from exc
    return data.strip("\x00").strip()


class CommandEnvelope(BaseModel):
    model_config = {"extra": "ignore"}

    method: str
    env: str | None = None
    params: DeviceParams = Field(default_factory=DeviceParams)
    result: DeviceParams | None = None
    error: dict[str, Any] | None = None

    @classmethod
    def build(cls, method: Method | str, **params: Any) -> CommandEnvelope:
        return cls(method=str(method), params=DeviceParams.model_validate(params))

    @classmethod
    def parse(cls, data: bytes | str) -> CommandEnvelope:
        text = decode_payload(data)
        if not text:
            raise MalformedReplyError("Empty payload")
        try:
            return cls.model_validate_json(text)
        except ValidationError as exc:
            raise MalformedReplyError(f"Not a command envelope: {text[:80]!r}") from exc

    def to_wire(self) -> dict[str, Any]:
        document: dict[str, Any] = {"method": self.method}
        if self.env is not None:
            document["env"] = self.env
        document["params"] = self.params.to_wire()
        if self.result is not None:
            document["result"] = self.result.to_wire()
        if self.error is not None:
            document["error"] = self.error
        return document

    def to_text(self) -> str:
        return json.dumps(self.to_wire(), separators=(",", ":"))

    def to_bytes(self) -> bytes:
        return self.to_text().encode("utf-8")

    def raise_for_error(self) -> None:
        if self.error is None:
            return
        code = self.error.get("code")
        raise DeviceReplyError(
            self.method,
            code if isinstance(code, int) else None,
            str(self.error.get("message", "")),
        )
