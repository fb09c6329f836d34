from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.table import Table

from wizlan.config import Settings, get_settings, resolve_config_path
from wizlan.core import UdpTransport
from wizlan.errors import WizError
from wizlan.models import DeviceRecord, ScanMode
from wizlan.services import DeviceService
from wizlan.storage import DeviceCache
from wizlan.utils.redaction import Redactor

T = TypeVar("T")

DeviceAction = Callable[[DeviceService, DeviceRecord], Awaitable[DeviceRecord]]


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def run_or_exit(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except (WizError, ValueError, OSError, RuntimeError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1) from exc


def build_service(settings: Settings) -> DeviceService:
    transport = UdpTransport(settings.transport, settings.discovery)
    return DeviceService(transport, DeviceCache(), settings)


async def discover_devices(
    settings: Settings, mode: ScanMode | None, timeout: float | None
) -> list[DeviceRecord]:
    service = build_service(settings)
    async with service.transport:
        return await service.discover(mode=mode, timeout=timeout)


async def query_device(settings: Settings, ip: str) -> DeviceRecord:
    service = build_service(settings)
    async with service.transport:
        return await service.query_state(ip)


async def apply_to_device(settings: Settings, ip: str, action: DeviceAction) -> DeviceRecord:
    service = build_service(settings)
    async with service.transport:
        record = await service.query_state(ip)
        return await action(service, record)


def device_table(records: list[DeviceRecord], redactor: Redactor | None = None) -> Table:
    redactor = redactor or Redactor(enabled=False)
    table = Table()
    table.add_column("IP", style="cyan")
    table.add_column("MAC Address", style="green")
    table.add_column("State")
    table.add_column("Brightness")
    table.add_column("Module")
    table.add_column("Firmware")

    for record in records:
        state = record.params.state
        table.add_row(
            redactor.redact_ip(record.ip),
            redactor.redact_mac(record.mac),
            "" if state is None else ("on" if state else "off"),
            "" if record.params.brightness is None else f"{record.brightness}%",
            record.module_name,
            redactor.redact_firmware(record.params.fw_version),
        )
    return table
