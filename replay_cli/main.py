#!/usr/bin/env python3
"""
ebreplay CLI - paced EventBridge archive replay

Main entrypoint for the ebreplay command-line tool.
"""

import typer
from rich.console import Console
from rich.table import Table

from replay_cli.commands import archive, run, status

app = typer.Typer(
    name="ebreplay",
    help="Paced EventBridge archive replay",
    add_completion=False,
)

console = Console()

app.add_typer(archive.app, name="archive", help="Archive replay operations")

app.command(name="run")(run.run_command)
app.command(name="status")(status.status_command)


@app.command()
def version():
    """Show version information."""
    from replay_cli import __version__
    from replay_engine import __version__ as engine_version

    table = Table(show_header=False, box=None)
    table.add_row("[bold]ebreplay CLI[/bold]", f"v{__version__}")
    table.add_row("Engine", f"v{engine_version}")

    console.print(table)


def main():
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
