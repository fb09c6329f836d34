from __future__ import annotations

import logging

import typer
from rich.console import Console

from wizlan.models import ScanMode
from wizlan.utils.redaction import Redactor

from .common import device_table, discover_devices, load_settings_or_exit, run_or_exit

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    @app.command()
    def discover(
        timeout: float | None = typer.Option(
            None, "--timeout", "-t", help="Seconds to listen for replies"
        ),
        mode: ScanMode | None = typer.Option(
            None, "--mode", "-m", help="Command broadcast to find devices"
        ),
        redact: bool = typer.Option(
            False,
            "--redact",
            help="Redact sensitive values in output",
        ),
    ) -> None:
        """Broadcast on the local network and list every device that answers."""
        console = Console()
        settings = load_settings_or_exit()

        window = timeout if timeout is not None else settings.discovery.timeout
        console.print(f"Discovering devices for {window:.1f}s...")
        logger.info(
            "Discovery settings: broadcast=%s, interval=%.2fs",
            settings.discovery.broadcast_address,
            settings.discovery.interval,
        )
        devices = run_or_exit(discover_devices(settings, mode, timeout))

        if not devices:
            console.print("No devices found.")
            return

        devices.sort(key=lambda record: record.ip or "")
        console.print(device_table(devices, Redactor(enabled=redact)))
        console.print(f"\n[green]Found {len(devices)} device(s)[/green]")
