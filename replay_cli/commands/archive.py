"""
Archive commands: start a replay, seed test events
"""

import json
from datetime import timedelta
from typing import Optional

import typer
from rich.console import Console

from replay_engine.bus.archive import ArchiveReplayStarter, ReplayWindow, make_seed_events, seed_events
from replay_engine.bus.clients import make_client
from replay_engine.bus.publisher import EventBridgePublisher
from replay_engine.config import ReplayConfig
from replay_engine.core.errors import ReplayError
from replay_engine.observability.logging_config import setup_logging

app = typer.Typer()
console = Console()


def _fail(e: Exception, json_output: bool) -> None:
    if json_output:
        print(json.dumps({"error": str(e)}))
    else:
        console.print(f"[red]Error:[/red] {e}")
    raise typer.Exit(2)


@app.command()
def start(
    lookback_minutes: int = typer.Option(60, "--lookback-minutes", "-m", help="Replay the last N minutes"),
    poll_interval: float = typer.Option(5.0, "--poll-interval", help="Seconds between status checks"),
    wait: bool = typer.Option(True, "--wait/--no-wait", help="Wait for the replay to finish"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Give up waiting after N seconds"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Start an archive replay of the last N minutes onto the bus.

    Points the replay rule at the replay target first, so every replayed
    event arrives with the window start attached.

    Examples:
        ebreplay archive start
        ebreplay archive start --lookback-minutes 15 --no-wait
    """
    setup_logging()
    try:
        config = ReplayConfig.from_env()
        bus_arn = config.require("event_bus_arn")
        starter = ArchiveReplayStarter(
            make_client("events", region=config.region, endpoint_url=config.endpoint_url, max_attempts=3)
        )
        window = ReplayWindow.last(timedelta(minutes=lookback_minutes))

        starter.upsert_rule_target(
            rule_name=config.require("replay_rule_name"),
            event_bus=bus_arn,
            role_arn=config.require("replay_rule_role_arn"),
            target_arn=config.require("replay_target_arn"),
            start_time=window.start,
        )
        replay_arn = starter.start_replay(window, bus_arn, config.require("archive_arn"))
        if not json_output:
            console.print(f"Replay name: [cyan]{window.name}[/cyan]")

        state = "STARTING"
        if wait:
            state = starter.wait_for_replay(window.name, poll_interval=poll_interval, timeout=timeout)
    except ReplayError as e:
        _fail(e, json_output)

    if json_output:
        print(json.dumps({"replay_name": window.name, "replay_arn": replay_arn, "state": state}))
    else:
        console.print(f"[green]✓ Replay {window.name} {state}[/green]")
    raise typer.Exit(0)


@app.command()
def seed(
    count: int = typer.Option(10, "--count", "-n", help="Number of test events"),
    source: str = typer.Option("eb-test-app", "--source", help="Event source"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Publish test events onto the bus so the archive has something to replay.

    Examples:
        ebreplay archive seed
        ebreplay archive seed --count 25
    """
    setup_logging()
    try:
        config = ReplayConfig.from_env()
        publisher = EventBridgePublisher(
            make_client("events", region=config.region, endpoint_url=config.endpoint_url),
            config.require("event_bus_name"),
        )
        result = seed_events(publisher, make_seed_events(count, source=source))
    except ReplayError as e:
        _fail(e, json_output)

    if json_output:
        print(json.dumps(result.to_dict()))
    else:
        console.print(f"[green]✓ Sent {result.total_entry_count} events[/green]")
    raise typer.Exit(0)
