"""
ConfigPilot CLI.

Command groups live in their own modules and are attached to the main
Click group through register functions.

Entry point: configpilot.cli:main
"""

from __future__ import annotations

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="configpilot")
def main():
    """ConfigPilot: pull, decrypt and deploy on every new commit."""


from .monitor import register_monitor_commands
from .revision import register_revision_commands

register_monitor_commands(main)
register_revision_commands(main)
