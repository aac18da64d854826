"""Monitor commands: run, status, stop."""

from __future__ import annotations

import json
import os
import signal
import sys

import click
from rich.markup import escape

from ._common import config_option, console, load_or_exit
from ..errors import StartupError


def register_monitor_commands(main: click.Group) -> None:
    """Register run, status and stop."""

    @main.command("run")
    @config_option
    def run(config_path):
        """Watch the repository and deploy every new commit.

        Establishes the current commit as a baseline, then polls at the
        configured interval. Runs in the foreground until SIGTERM/Ctrl+C.
        """
        from ..daemon import PilotDaemon, is_running

        config = load_or_exit(config_path)
        if is_running(config.data_dir):
            console.print(f"[yellow]A monitor is already running for {config.data_dir}.[/]")
            sys.exit(0)

        console.print(
            f"\n  [green]Starting gitops automation[/] for [cyan]{config.owner}/{config.repo}[/]"
        )
        console.print(f"  Interval: {config.interval}s | Data: {config.data_dir}")
        console.print("  [dim]Press Ctrl+C to stop monitoring[/]\n")

        svc = PilotDaemon(config)
        try:
            svc.start()
        except StartupError as exc:
            console.print(f"[bold red]Error starting monitor:[/] {escape(str(exc))}")
            sys.exit(1)
        svc.run_forever()

    @main.command("status")
    @config_option
    @click.option("--json-out", is_flag=True, help="Output as JSON.")
    def status(config_path, json_out):
        """Show whether a monitor is running for the configured data dir."""
        from ..daemon import read_pid

        config = load_or_exit(config_path, with_logging=False)
        pid = read_pid(config.data_dir)

        if json_out:
            click.echo(json.dumps({
                "running": pid is not None,
                "pid": pid,
                "repository": f"{config.owner}/{config.repo}",
                "monitor_path": config.monitor_path,
                "data_dir": str(config.data_dir),
            }, indent=2))
            return

        if pid is None:
            console.print("\n  [yellow]Monitor is not running.[/]\n")
            return

        scope = config.monitor_path or "[dim]entire repository[/]"
        console.print(f"\n  [green]Monitor running[/] (PID {pid})")
        console.print(f"  Repository: [cyan]{config.owner}/{config.repo}[/]")
        console.print(f"  Path: {scope}\n")

    @main.command("stop")
    @config_option
    def stop(config_path):
        """Send SIGTERM to the running monitor."""
        from ..daemon import PID_FILE, read_pid

        config = load_or_exit(config_path, with_logging=False)
        pid = read_pid(config.data_dir)
        if pid is None:
            console.print("[yellow]Monitor is not running.[/]")
            return

        try:
            os.kill(pid, signal.SIGTERM)
            console.print(f"\n  [green]Sent SIGTERM to monitor (PID {pid})[/]\n")
        except ProcessLookupError:
            console.print("[yellow]Monitor process not found, cleaning up PID file.[/]")
            (config.data_dir / PID_FILE).unlink(missing_ok=True)
