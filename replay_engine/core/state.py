"""
Execution state model.

An ExecutionStatus is the immutable snapshot of one replay execution. The
reducer produces a new snapshot for every journal event.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from .events import PublishResult, ReplayContext


class ExecutionState(str, Enum):
    STARTED = "Started"
    CALCULATING = "Calculating"
    WAITING = "Waiting"
    PUBLISHING = "Publishing"
    CLASSIFYING = "Classifying"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {ExecutionState.SUCCEEDED, ExecutionState.FAILED, ExecutionState.CANCELLED}
)


class Outcome(str, Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


@dataclass(frozen=True)
class ExecutionStatus:
    """
    Externally observable status of one replay execution.

    Fields:
        execution_id: Execution identifier (journal aggregate id)
        state: Current state machine state
        outcome: Terminal outcome, None until a terminal state is reached
        context: Replay context, set once the trigger is received
        delay_seconds: Computed wait, once calculated
        wake_at_ms: Absolute wake-up time in ms since epoch, once calculated
        result: Publish result, once published
        error: Error text for failed executions
        failed_entries: Per-entry details of failed publish entries
        version: Number of transitions applied
        updated_at_ms: Timestamp of the last transition
    """
    execution_id: str
    state: ExecutionState = ExecutionState.STARTED
    outcome: Optional[Outcome] = None
    context: Optional[ReplayContext] = None
    delay_seconds: Optional[int] = None
    wake_at_ms: Optional[int] = None
    result: Optional[PublishResult] = None
    error: Optional[str] = None
    failed_entries: List[Dict[str, Any]] = field(default_factory=list)
    version: int = 0
    updated_at_ms: Optional[int] = None

    @staticmethod
    def initial(execution_id: str) -> "ExecutionStatus":
        return ExecutionStatus(execution_id=execution_id)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def advance(self, ts: int, **changes: Any) -> "ExecutionStatus":
        """Return a new snapshot with changes applied and version incremented."""
        return replace(self, version=self.version + 1, updated_at_ms=ts, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "state": self.state.value,
            "outcome": self.outcome.value if self.outcome else None,
            "replay_name": self.context.replay_name if self.context else None,
            "event_id": self.context.event.correlation_id() if self.context else None,
            "delay_seconds": self.delay_seconds,
            "wake_at_ms": self.wake_at_ms,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "failed_entries": list(self.failed_entries),
            "version": self.version,
            "updated_at_ms": self.updated_at_ms,
        }
