"""
ReplayOrchestrator: dispatches one ReplayExecution per replayed event and
exposes their status.

Executions run concurrently and independently. The orchestrator only keeps
the registry of executions; it never serializes access to the bus.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional

from ..bus.publisher import Publisher
from ..core.clock import Clock, SystemClock
from ..core.errors import JournalError
from ..core.events import ReplayContext
from ..core.ids import event_key, execution_id as make_execution_id
from ..core.reducer import Reducer
from ..core.state import ExecutionStatus
from ..log.store import ExecutionJournal
from ..observability import metrics
from ..observability.sink import LoggingSink, RecordSink
from ..pacing import WaitTimeCalculator
from ..suspend import Suspender
from .execution import Listener, ReplayExecution
from .runner import rebuild
from .transitions import build_reducer
from .trigger import ReplayTrigger, parse_trigger

logger = logging.getLogger(__name__)


class ReplayOrchestrator:
    """
    Entry point for replay executions.

    Usage:
        orchestrator = ReplayOrchestrator(TimeCompressionCalculator(), publisher)
        execution_id = orchestrator.dispatch_message(message)
        status = orchestrator.wait(execution_id, timeout=60)
        status.state, status.outcome
    """

    def __init__(
        self,
        calculator: WaitTimeCalculator,
        publisher: Publisher,
        suspender: Optional[Suspender] = None,
        journal: Optional[ExecutionJournal] = None,
        sink: Optional[RecordSink] = None,
        clock: Optional[Clock] = None,
        reducer: Optional[Reducer] = None,
        require_replay_name: bool = False,
    ) -> None:
        """
        Args:
            calculator: Pacing policy
            publisher: Target bus publisher
            suspender: Suspension for the wait step (default: on clock)
            journal: Transition journal (None = status kept in memory only)
            sink: Publish record sink (default: LoggingSink)
            clock: Time source (default: suspender's clock, else SystemClock)
            reducer: State machine (default: build_reducer())
            require_replay_name: Reject triggers without the replay-name marker
        """
        self.clock = clock or (suspender.clock if suspender else SystemClock())
        self.suspender = suspender or Suspender(self.clock)
        self.calculator = calculator
        self.publisher = publisher
        self.journal = journal
        self.sink = sink or LoggingSink()
        self.reducer = reducer or build_reducer()
        self.require_replay_name = require_replay_name

        self._lock = threading.Lock()
        self._executions: Dict[str, ReplayExecution] = {}
        self._attempts: Dict[str, int] = {}
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        """Call listener(status, event) after every transition of every execution."""
        with self._lock:
            self._listeners.append(listener)

    def dispatch(self, trigger: ReplayTrigger) -> str:
        """
        Start a new execution for a replayed event.

        Returns:
            Execution id
        """
        key = event_key(trigger.replay_name, trigger.event)
        with self._lock:
            attempt = self._attempts.get(key, 0)
            self._attempts[key] = attempt + 1
            context = ReplayContext(
                event=trigger.event,
                replay_name=trigger.replay_name,
                attempt_index=attempt,
                window_start=trigger.window_start,
            )
            execution_id = make_execution_id(trigger.replay_name, trigger.event, attempt)
            execution = self._new_execution(ExecutionStatus.initial(execution_id), context)
            self._executions[execution_id] = execution

        metrics.track_dispatched()
        logger.info(
            f"Dispatched execution {execution_id} for {trigger.event.detail_type} "
            f"from {trigger.event.source}",
            extra={"execution_id": execution_id, "replay_name": trigger.replay_name},
        )
        execution.start()
        return execution_id

    def dispatch_message(self, message: Any) -> str:
        """
        Parse a trigger message and dispatch it.

        Raises:
            TriggerError: If the message is not a valid trigger
        """
        return self.dispatch(parse_trigger(message, require_replay_name=self.require_replay_name))

    def cancel(self, execution_id: str) -> bool:
        """
        Cancel one execution. Other executions are unaffected.

        Raises:
            KeyError: If the execution is unknown
        """
        return self._get(execution_id).cancel()

    def status(self, execution_id: str) -> ExecutionStatus:
        """
        Raises:
            KeyError: If the execution is unknown
        """
        return self._get(execution_id).status

    def statuses(self) -> Dict[str, ExecutionStatus]:
        with self._lock:
            executions = list(self._executions.values())
        return {e.execution_id: e.status for e in executions}

    def wait(self, execution_id: str, timeout: Optional[float] = None) -> ExecutionStatus:
        """Block until the execution is terminal (or timeout) and return its status."""
        execution = self._get(execution_id)
        execution.wait(timeout)
        return execution.status

    def wait_all(self, timeout: Optional[float] = None) -> Dict[str, ExecutionStatus]:
        """Block until every known execution is terminal (or timeout)."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            executions = list(self._executions.values())
        for execution in executions:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            execution.wait(remaining)
        return self.statuses()

    def resume(self) -> List[str]:
        """
        Load executions from the journal and restart unfinished ones at
        their last recorded state.

        Returns:
            Ids of the restarted executions

        Raises:
            JournalError: If no journal is configured or it is invalid
        """
        if self.journal is None:
            raise JournalError("resume requires a journal")

        result = rebuild(self.journal, self.reducer)
        restarted = []
        with self._lock:
            for execution_id, status in result.statuses.items():
                if execution_id in self._executions:
                    continue
                key, _, attempt = execution_id.rpartition("-")
                if attempt.isdigit():
                    self._attempts[key] = max(self._attempts.get(key, 0), int(attempt) + 1)
                self._executions[execution_id] = self._new_execution(status, status.context)
                if not status.is_terminal:
                    restarted.append(execution_id)

        for execution_id in restarted:
            metrics.track_dispatched()
            status = self.status(execution_id)
            logger.info(
                f"Resuming execution {execution_id} at {status.state.value}",
                extra={
                    "execution_id": execution_id,
                    "replay_name": status.context.replay_name if status.context else None,
                },
            )
            self._get(execution_id).start()
        return restarted

    def _get(self, execution_id: str) -> ReplayExecution:
        with self._lock:
            try:
                return self._executions[execution_id]
            except KeyError:
                raise KeyError(f"unknown execution: {execution_id}") from None

    def _new_execution(self, status: ExecutionStatus, context: Optional[ReplayContext]) -> ReplayExecution:
        return ReplayExecution(
            status=status,
            context=context,
            calculator=self.calculator,
            publisher=self.publisher,
            suspender=self.suspender,
            reducer=self.reducer,
            clock=self.clock,
            sink=self.sink,
            journal=self.journal,
            listeners=self._listeners,
        )
