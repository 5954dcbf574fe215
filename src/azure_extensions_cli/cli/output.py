"""Table rendering for CLI results."""

from __future__ import annotations

from typing import Sequence, TextIO

from rich.console import Console
from rich.table import Table

from azure_extensions_cli.models import ExtensionVersionInfo, ReplicationStatusEntry


def _console(stream: TextIO) -> Console:
    return Console(file=stream, highlight=False, width=160)


def render_versions_table(versions: Sequence[ExtensionVersionInfo], stream: TextIO) -> None:
    table = Table(show_header=True)
    table.add_column("Namespace", style="cyan")
    table.add_column("Type")
    table.add_column("Version")
    table.add_column("Replication Completed")
    table.add_column("Regions", overflow="fold")
    for item in versions:
        table.add_row(
            item.namespace,
            item.name,
            item.version,
            str(item.replication_completed).lower(),
            item.regions,
        )
    _console(stream).print(table)


def render_replication_table(entries: Sequence[ReplicationStatusEntry], stream: TextIO) -> None:
    table = Table(show_header=True)
    table.add_column("Location", style="cyan")
    table.add_column("Status")
    for entry in entries:
        table.add_row(entry.location, entry.status)
    _console(stream).print(table)
