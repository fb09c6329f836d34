from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from wizlan.mock_device import run_mock_device
from wizlan.models import DEFAULT_PORT


def register(app: typer.Typer) -> None:
    @app.command()
    def mock(
        port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Port to listen on"),
        mac: str = typer.Option(
            "AA:BB:CC:DD:EE:FF", "--mac", help="MAC address to report"
        ),
    ) -> None:
        """Run a mock device for development."""
        console = Console()
        console.print(f"Starting mock device {mac} on port {port}...")
        console.print("Press Ctrl+C to stop.\n")

        try:
            asyncio.run(run_mock_device(port=port, mac_address=mac))
        except KeyboardInterrupt:
            console.print("\n[green]Mock device stopped.[/green]")
