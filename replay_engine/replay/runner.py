"""
Journal rebuild: reconstruct execution statuses from the journal.

Rebuild is pure: applies the reducer to each journal event in sequence order.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from ..core.reducer import Reducer
from ..core.state import ExecutionStatus
from ..log.store import ExecutionJournal
from .transitions import build_reducer


@dataclass(frozen=True)
class RebuildResult:
    """
    Result of a journal rebuild.

    Fields:
        statuses: execution_id -> last recorded status
        applied: Number of journal events applied
    """
    statuses: Dict[str, ExecutionStatus]
    applied: int

    def pending(self) -> Dict[str, ExecutionStatus]:
        """Executions that had not reached a terminal state."""
        return {k: v for k, v in self.statuses.items() if not v.is_terminal}


def rebuild(
    journal: ExecutionJournal,
    reducer: Optional[Reducer] = None,
    execution_id: Optional[str] = None,
    to_seq: Optional[int] = None,
) -> RebuildResult:
    """
    Rebuild execution statuses from the journal.

    Args:
        journal: Journal to read from
        reducer: Reducer with transition handlers (default: build_reducer())
        execution_id: Only rebuild this execution (None = all)
        to_seq: Stop at this sequence (inclusive, None = all)

    Raises:
        JournalError: If the journal fails integrity checks
        InvalidTransitionError: If the journal holds an illegal transition
    """
    reducer = reducer or build_reducer()
    statuses: Dict[str, ExecutionStatus] = {}
    count = 0

    for ev in journal.read(aggregate_id=execution_id, from_seq=0):
        if to_seq is not None and ev.require_seq() > to_seq:
            break
        current = statuses.get(ev.aggregate_id) or ExecutionStatus.initial(ev.aggregate_id)
        statuses[ev.aggregate_id] = reducer.apply(current, ev)
        count += 1

    return RebuildResult(statuses=statuses, applied=count)
