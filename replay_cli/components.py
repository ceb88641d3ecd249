"""
Wiring of engine components from configuration.
"""

from typing import Optional

from rich.console import Console
from rich.table import Table

from replay_engine.bus.clients import make_client
from replay_engine.bus.publisher import EventBridgePublisher
from replay_engine.config import ReplayConfig
from replay_engine.core.clock import SystemClock
from replay_engine.core.state import ExecutionState, ExecutionStatus
from replay_engine.log import FileJournal
from replay_engine.observability.sink import CloudWatchLogsSink, LoggingSink, RecordSink, SqsDeadLetterQueue
from replay_engine.pacing import TimeCompressionCalculator
from replay_engine.replay import ReplayOrchestrator
from replay_engine.suspend import Suspender

STATE_STYLES = {
    ExecutionState.SUCCEEDED: "green",
    ExecutionState.FAILED: "red",
    ExecutionState.CANCELLED: "yellow",
}


def build_publisher(config: ReplayConfig, event_bus: Optional[str] = None) -> EventBridgePublisher:
    client = make_client("events", region=config.region, endpoint_url=config.endpoint_url)
    bus = event_bus or config.event_bus_arn or config.require("event_bus_name")
    return EventBridgePublisher(client, bus)


def build_sink(config: ReplayConfig) -> RecordSink:
    if not config.log_group:
        return LoggingSink()
    dead_letter = None
    if config.dlq_url:
        sqs = make_client("sqs", region=config.region, endpoint_url=config.endpoint_url, max_attempts=3)
        dead_letter = SqsDeadLetterQueue(sqs, config.dlq_url)
    logs = make_client("logs", region=config.region, endpoint_url=config.endpoint_url, max_attempts=3)
    return CloudWatchLogsSink(logs, config.log_group, config.log_stream, dead_letter)


def build_orchestrator(
    config: ReplayConfig,
    event_bus: Optional[str] = None,
    window_start: Optional[str] = None,
    require_replay_name: bool = False,
) -> ReplayOrchestrator:
    calculator = TimeCompressionCalculator(
        factor=config.pacing_factor,
        max_delay_seconds=config.max_delay_seconds,
        window_start=window_start,
    )
    clock = SystemClock()
    return ReplayOrchestrator(
        calculator=calculator,
        publisher=build_publisher(config, event_bus),
        suspender=Suspender(clock),
        journal=FileJournal(config.journal_path) if config.journal_path else None,
        sink=build_sink(config),
        clock=clock,
        require_replay_name=require_replay_name,
    )


def status_table(statuses: dict, title: str = "Replay Executions") -> Table:
    table = Table(title=title)
    table.add_column("Execution", style="cyan")
    table.add_column("Event", style="dim")
    table.add_column("State")
    table.add_column("Delay (s)", justify="right")
    table.add_column("Detail")

    for execution_id in sorted(statuses):
        st: ExecutionStatus = statuses[execution_id]
        style = STATE_STYLES.get(st.state, "white")
        event_id = st.context.event.correlation_id() if st.context else None
        detail = st.error or ""
        if st.failed_entries:
            codes = ", ".join(str(e.get("error_code")) for e in st.failed_entries)
            detail = f"{detail} [{codes}]"
        table.add_row(
            execution_id,
            event_id or "-",
            f"[{style}]{st.state.value}[/{style}]",
            "-" if st.delay_seconds is None else str(st.delay_seconds),
            detail,
        )
    return table


def summarize(console: Console, statuses: dict) -> None:
    counts = {}
    for st in statuses.values():
        counts[st.state.value] = counts.get(st.state.value, 0) + 1
    parts = [f"{state}: {n}" for state, n in sorted(counts.items())]
    console.print(f"[bold]{len(statuses)} executions[/bold] " + ", ".join(parts))
