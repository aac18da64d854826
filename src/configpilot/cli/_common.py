"""Shared helpers for the CLI command modules."""

from __future__ import annotations

import sys
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape

from ..config import load_config
from ..errors import ConfigError
from ..logs import setup_logging
from ..models import PilotConfig

console = Console()

config_option = click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Config file (default: $CONFIG_PATH or ./config.yaml).",
)


def load_or_exit(config_path: Optional[str], with_logging: bool = True) -> PilotConfig:
    """Load the configuration, printing the error and exiting 1 on failure."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        console.print(f"[bold red]Error loading config:[/] {escape(str(exc))}")
        sys.exit(1)
    if with_logging:
        setup_logging(config.logging)
    return config
