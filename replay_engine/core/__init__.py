"""
Core replay primitives.

This module provides the foundational abstractions for replay executions:
- ArchivedEvent, ReplayContext, WaitDecision, PublishResult: data model
- Event: Immutable journal records of execution transitions
- ExecutionStatus: Observable execution snapshot
- Reducer: Guarded state transitions
- Clock: Injectable time source and timer
"""

from .events import (
    ArchivedEvent,
    EntryResult,
    Event,
    PublishResult,
    ReplayContext,
    WaitDecision,
    format_timestamp,
    parse_timestamp,
)
from .state import ExecutionState, ExecutionStatus, Outcome, TERMINAL_STATES
from .reducer import Reducer
from .canonical import canonicalize, canonical_json_bytes, canonical_json_str
from .clock import CancellationToken, Clock, ManualClock, SystemClock
from .ids import event_key, execution_id, stable_id
from .errors import (
    ArchiveReplayError,
    CalculationError,
    ConfigError,
    ExecutionCancelled,
    InvalidTransitionError,
    JournalError,
    PartialPublishFailure,
    ReplayError,
    TransportError,
    TriggerError,
)

__all__ = [
    "ArchivedEvent",
    "EntryResult",
    "Event",
    "PublishResult",
    "ReplayContext",
    "WaitDecision",
    "format_timestamp",
    "parse_timestamp",
    "ExecutionState",
    "ExecutionStatus",
    "Outcome",
    "TERMINAL_STATES",
    "Reducer",
    "canonicalize",
    "canonical_json_bytes",
    "canonical_json_str",
    "CancellationToken",
    "Clock",
    "ManualClock",
    "SystemClock",
    "event_key",
    "execution_id",
    "stable_id",
    "ArchiveReplayError",
    "CalculationError",
    "ConfigError",
    "ExecutionCancelled",
    "InvalidTransitionError",
    "JournalError",
    "PartialPublishFailure",
    "ReplayError",
    "TransportError",
    "TriggerError",
]
