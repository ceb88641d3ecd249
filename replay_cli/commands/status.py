"""
Status command: rebuild execution statuses from a journal.
"""

import json
from typing import Optional

import typer
from rich.console import Console

from replay_engine.core.errors import ReplayError
from replay_engine.log import FileJournal
from replay_engine.replay import rebuild

from ..components import status_table, summarize

console = Console()


def status_command(
    journal: str = typer.Option(..., "--journal", "-j", envvar="EBREPLAY_JOURNAL_PATH", help="Journal file path"),
    execution_id: Optional[str] = typer.Option(None, "--execution", "-e", help="Only this execution"),
    pending: bool = typer.Option(False, "--pending", help="Only executions that are not terminal"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show execution states and outcomes recorded in a journal.

    Examples:
        ebreplay status --journal /tmp/ebreplay.journal
        ebreplay status -j /tmp/ebreplay.journal --execution 3f2a9c0d1b7e4a55-0 --json
    """
    try:
        result = rebuild(FileJournal(journal), execution_id=execution_id)
    except ReplayError as e:
        if json_output:
            print(json.dumps({"error": str(e)}))
        else:
            console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2)

    statuses = result.pending() if pending else result.statuses
    if execution_id and not statuses:
        if json_output:
            print(json.dumps({"error": "execution not found", "execution_id": execution_id}))
        else:
            console.print(f"[red]Error: execution not found:[/red] {execution_id}")
        raise typer.Exit(2)

    if json_output:
        print(json.dumps({
            "applied": result.applied,
            "executions": [st.to_dict() for st in statuses.values()],
        }, indent=2))
    else:
        console.print(status_table(statuses, title=f"Journal: {journal}"))
        summarize(console, statuses)
    raise typer.Exit(0)
