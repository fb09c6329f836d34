from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from wizlan.config import Settings, write_settings

from .common import resolve_config_path_or_exit


def register(app: typer.Typer) -> None:
    @app.command()
    def init(
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Overwrite existing config"),
        ] = False,
    ) -> None:
        """Write a default configuration file."""
        console = Console()
        path, exists = resolve_config_path_or_exit(allow_missing=True)

        if exists and not force:
            console.print(f"Config already exists at {path}")
            return

        write_settings(Settings(), path)
        console.print(f"[green]✓[/green] Wrote default config to {path}")
