"""One-shot commands: check the latest revision, reconcile now."""

from __future__ import annotations

import sys

import click
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ._common import config_option, console, load_or_exit
from ..errors import ReconcileError, RevisionError


def register_revision_commands(main: click.Group) -> None:
    """Register check and reconcile."""

    @main.command("check")
    @config_option
    def check(config_path):
        """Print the newest commit on the monitored path."""
        from ..daemon import build_client

        config = load_or_exit(config_path, with_logging=False)
        client = build_client(config)
        try:
            rev = client.fetch_latest(config.monitor_path)
        except RevisionError as exc:
            console.print(f"[bold red]Revision query failed:[/] {escape(str(exc))}")
            sys.exit(1)

        when = rev.timestamp.isoformat() if rev.timestamp else "[dim]unknown[/]"
        console.print()
        console.print(
            Panel(
                f"SHA: [bold]{rev.sha}[/]\n"
                f"Author: {escape(rev.author_name)} <{escape(rev.author_email)}>\n"
                f"Date: {when}\n"
                f"Message: {escape(rev.message.splitlines()[0]) if rev.message else ''}\n"
                f"URL: [cyan]{rev.html_url}[/]",
                title=f"[green]{config.owner}/{config.repo}[/] {config.monitor_path or '/'}",
                border_style="green",
            )
        )

    @main.command("reconcile")
    @config_option
    @click.option("--no-delay", is_flag=True, help="Skip the settle delay before cloning.")
    def reconcile(config_path, no_delay):
        """Clone, decrypt and run the script once, right now."""
        from ..daemon import build_reconciler

        config = load_or_exit(config_path)
        if no_delay:
            config = config.model_copy(update={"settle_delay": 0.0})

        reconciler = build_reconciler(config)
        try:
            report = reconciler.reconcile(config.context())
        except ReconcileError as exc:
            console.print(f"[bold red]Reconciliation failed at {exc.step}:[/] {escape(str(exc))}")
            if exc.output:
                console.print(exc.output, markup=False, highlight=False)
            sys.exit(1)

        table = Table(title="Reconciliation", show_header=False)
        table.add_row("Steps", " → ".join(report.steps))
        if report.decrypt is not None:
            table.add_row("Decrypted", str(len(report.decrypt.decrypted)))
            table.add_row("Skipped", str(len(report.decrypt.skipped)))
        table.add_row("Duration", f"{report.duration_s:.1f}s")
        console.print(table)
