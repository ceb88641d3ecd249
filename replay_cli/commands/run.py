"""
Run command: dispatch replay triggers and wait for every execution.
"""

import json
import sys
import threading
from dataclasses import replace
from typing import Any, Dict, Optional

import typer
from rich.console import Console

from replay_engine.bus.clients import make_client
from replay_engine.config import ReplayConfig
from replay_engine.core.errors import ReplayError
from replay_engine.core.state import ExecutionState, ExecutionStatus
from replay_engine.observability.logging_config import setup_logging
from replay_engine.observability.metrics import start_metrics_server
from replay_engine.replay import ReplayOrchestrator, SqsTriggerSource, read_messages

from ..components import build_orchestrator, status_table, summarize

console = Console()


def exit_code(statuses: Dict[str, ExecutionStatus]) -> int:
    """0 when every execution succeeded, 1 otherwise."""
    ok = all(st.state is ExecutionState.SUCCEEDED for st in statuses.values())
    return 0 if ok else 1


def _dispatch_file(orchestrator: ReplayOrchestrator, input_path: str) -> int:
    stream = sys.stdin if input_path == "-" else open(input_path, "r")
    try:
        count = 0
        for message in read_messages(stream):
            orchestrator.dispatch_message(message)
            count += 1
        return count
    finally:
        if stream is not sys.stdin:
            stream.close()


def _cancel_pending(orchestrator: ReplayOrchestrator) -> None:
    for execution_id, st in orchestrator.statuses().items():
        if not st.is_terminal:
            orchestrator.cancel(execution_id)


def _print_error(json_output: bool, error: Exception) -> None:
    if json_output:
        print(json.dumps({"error": str(error)}))
    else:
        console.print(f"[red]Error:[/red] {error}")


def run_command(
    input_path: Optional[str] = typer.Option(
        None, "--input", "-i", help="JSON-lines trigger file ('-' for stdin)"
    ),
    queue: bool = typer.Option(False, "--queue", help="Poll the trigger SQS queue instead of a file"),
    max_polls: Optional[int] = typer.Option(None, "--max-polls", help="Stop polling after N receives"),
    journal: Optional[str] = typer.Option(None, "--journal", "-j", help="Journal file path"),
    resume: bool = typer.Option(False, "--resume", help="Restart unfinished executions from the journal"),
    event_bus: Optional[str] = typer.Option(None, "--bus", "-b", help="Target event bus name or ARN"),
    start_time: Optional[str] = typer.Option(
        None, "--start-time", help="Replay window start (RFC3339) for triggers without startTime"
    ),
    factor: Optional[float] = typer.Option(None, "--factor", help="Time compression factor"),
    max_delay: Optional[int] = typer.Option(None, "--max-delay", help="Upper bound for a single wait (seconds)"),
    require_replay_name: bool = typer.Option(
        False, "--replays-only", help="Reject triggers without the replay-name marker"
    ),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Give up waiting after N seconds"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level"),
):
    """
    Dispatch replay triggers and wait for their terminal state.

    Examples:
        ebreplay run --input triggers.jsonl
        cat triggers.jsonl | ebreplay run --input - --json
        ebreplay run --queue --max-polls 30 --journal /tmp/ebreplay.journal
        ebreplay run --resume --journal /tmp/ebreplay.journal
    """
    setup_logging(level=log_level)
    try:
        config = ReplayConfig.from_env()
        overrides = {
            k: v
            for k, v in {
                "journal_path": journal,
                "pacing_factor": factor,
                "max_delay_seconds": max_delay,
            }.items()
            if v is not None
        }
        config = replace(config, **overrides)
        start_metrics_server(config.metrics_enabled, config.metrics_port)

        orchestrator = build_orchestrator(
            config,
            event_bus=event_bus,
            window_start=start_time,
            require_replay_name=require_replay_name,
        )
    except (ReplayError, OSError) as e:
        _print_error(json_output, e)
        raise typer.Exit(2)

    # Executions already dispatched keep running when dispatch stops early;
    # they are always waited for and reported.
    error: Optional[Exception] = None
    try:
        if resume:
            resumed = orchestrator.resume()
            if not json_output:
                console.print(f"Resumed {len(resumed)} executions")
        if queue:
            sqs = make_client("sqs", region=config.region, endpoint_url=config.endpoint_url, max_attempts=3)
            source = SqsTriggerSource(sqs, config.require("trigger_queue_url"))
            source.run(orchestrator, threading.Event(), max_polls=max_polls)
        elif input_path:
            _dispatch_file(orchestrator, input_path)
        elif not resume:
            raise typer.BadParameter("one of --input, --queue or --resume is required")
    except (ReplayError, OSError) as e:
        error = e
    except KeyboardInterrupt:
        _cancel_pending(orchestrator)

    try:
        statuses = orchestrator.wait_all(timeout)
    except KeyboardInterrupt:
        _cancel_pending(orchestrator)
        statuses = orchestrator.wait_all(5.0)

    if json_output:
        output: Dict[str, Any] = {"executions": [st.to_dict() for st in statuses.values()]}
        if error is not None:
            output["error"] = str(error)
        print(json.dumps(output, indent=2))
    else:
        console.print(status_table(statuses))
        summarize(console, statuses)
        if error is not None:
            _print_error(False, error)
    raise typer.Exit(2 if error is not None else exit_code(statuses))
