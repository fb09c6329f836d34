from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from wizlan.models import DEFAULT_PORT, ScanMode

from .paths import default_config_path, expand_path

CONFIG_ENV_VAR = "WIZLAN_CONFIG"


class TransportSettings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    bind_address: str = "0.0.0.0"
    bind_port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    timeout: float = Field(default=2.0, gt=0)
    retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = Field(default=0.2, ge=0)
    retry_max_delay: float = Field(default=5.0, ge=0)


class DiscoverySettings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    broadcast_address: str = "255.255.255.255"
    timeout: float = Field(default=5.0, gt=0)
    interval: float = Field(default=0.5, gt=0)
    mode: ScanMode = ScanMode.GET_SYSTEM_CONFIG

    @model_validator(mode="after")
    def _interval_below_timeout(self) -> DiscoverySettings:
        if self.interval >= self.timeout:
            raise ValueError("discovery interval must be shorter than the timeout")
        return self


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    transport: TransportSettings = Field(default_factory=TransportSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def _toml_string(value: str) -> str:
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    transport = settings.transport
    discovery = settings.discovery
    lines = [
        "# wizlan configuration",
        "",
        "[transport]",
        f"bind_address = {_toml_string(transport.bind_address)}",
        f"bind_port = {transport.bind_port}",
        f"port = {transport.port}",
        f"timeout = {transport.timeout}",
        f"retries = {transport.retries}",
        f"retry_base_delay = {transport.retry_base_delay}",
        f"retry_max_delay = {transport.retry_max_delay}",
        "",
        "[discovery]",
        f"broadcast_address = {_toml_string(discovery.broadcast_address)}",
        f"timeout = {discovery.timeout}",
        f"interval = {discovery.interval}",
        f"mode = {_toml_string(discovery.mode.value)}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
