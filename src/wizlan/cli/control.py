from __future__ import annotations

import typer
from rich.console import Console

from wizlan.models import DeviceRecord
from wizlan.services import DeviceService

from .common import (
    apply_to_device,
    device_table,
    load_settings_or_exit,
    query_device,
    run_or_exit,
)


def _show(record: DeviceRecord) -> None:
    Console().print(device_table([record]))


def register(app: typer.Typer) -> None:
    @app.command()
    def state(ip: str = typer.Argument(..., help="Device IP address")) -> None:
        """Query the current state of a device."""
        settings = load_settings_or_exit()
        _show(run_or_exit(query_device(settings, ip)))

    @app.command()
    def on(ip: str = typer.Argument(..., help="Device IP address")) -> None:
        """Turn a device on."""
        settings = load_settings_or_exit()
        _show(run_or_exit(apply_to_device(settings, ip, DeviceService.turn_on)))

    @app.command()
    def off(ip: str = typer.Argument(..., help="Device IP address")) -> None:
        """Turn a device off."""
        settings = load_settings_or_exit()
        _show(run_or_exit(apply_to_device(settings, ip, DeviceService.turn_off)))

    @app.command()
    def brightness(
        ip: str = typer.Argument(..., help="Device IP address"),
        value: int = typer.Argument(..., min=0, max=100, help="Brightness in percent"),
    ) -> None:
        """Set the brightness of a device."""
        settings = load_settings_or_exit()

        async def _set(service: DeviceService, record: DeviceRecord) -> DeviceRecord:
            return await service.set_brightness(record, value)

        _show(run_or_exit(apply_to_device(settings, ip, _set)))
