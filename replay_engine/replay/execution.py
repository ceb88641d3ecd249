"""
ReplayExecution: one replayed event driven through the state machine.

Each execution runs on its own thread and owns its context, cancellation
token and status. Every transition goes through the reducer and is written
to the journal before the execution moves on, so a restarted process picks
up at a state boundary and never in the middle of a step.
"""

import os
import threading
from typing import Any, Callable, Dict, List, Optional

from ..bus.classifier import classify, failed_entries
from ..bus.publisher import Publisher
from ..core.clock import CancellationToken, Clock
from ..core.errors import CalculationError, ExecutionCancelled, TransportError
from ..core.events import Event, ReplayContext
from ..core.reducer import Reducer
from ..core.state import ExecutionState, ExecutionStatus, Outcome
from ..log.store import ExecutionJournal
from ..observability import metrics
from ..observability.logging_config import get_logger
from ..observability.sink import PublishRecord, RecordSink
from ..pacing import WaitTimeCalculator
from ..suspend import Suspender
from . import transitions as t

# Called after every transition with the new status and the applied event
Listener = Callable[[ExecutionStatus, Event], None]

S = ExecutionState

# A cancel is accepted until the wait has elapsed
CANCELLABLE_STATES = frozenset({S.STARTED, S.CALCULATING, S.WAITING})


class ReplayExecution:
    """
    Per-event workflow instance.

    Responsibilities:
    - Run calculate -> wait -> publish -> classify for one event
    - Record each transition (reducer + journal)
    - Emit a publish record after each publish attempt

    NOT responsible for:
    - Retrying failed publishes (terminal by design)
    - Other executions (nothing is shared but the publisher)
    """

    def __init__(
        self,
        status: ExecutionStatus,
        context: Optional[ReplayContext],
        calculator: WaitTimeCalculator,
        publisher: Publisher,
        suspender: Suspender,
        reducer: Reducer,
        clock: Clock,
        sink: RecordSink,
        journal: Optional[ExecutionJournal] = None,
        listeners: Optional[List[Listener]] = None,
    ) -> None:
        self.execution_id = status.execution_id
        self.context = context or status.context
        self.calculator = calculator
        self.publisher = publisher
        self.suspender = suspender
        self.reducer = reducer
        self.clock = clock
        self.sink = sink
        self.journal = journal
        self.listeners = listeners if listeners is not None else []
        self.token = CancellationToken()
        self.log = get_logger(
            __name__,
            execution_id=self.execution_id,
            replay_name=self.context.replay_name if self.context else None,
        )
        self.meta: Dict[str, Any] = {"pid": os.getpid()}

        self._status = status
        self._lock = threading.Lock()
        self._cancel_requested = False
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        if status.is_terminal:
            self._done.set()

    @property
    def status(self) -> ExecutionStatus:
        with self._lock:
            return self._status

    def start(self) -> None:
        """Run the execution on its own daemon thread."""
        if self._done.is_set() or self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self.run,
            name=f"replay-{self.execution_id}",
            daemon=True,
        )
        self._thread.start()

    def cancel(self) -> bool:
        """
        Request cancellation.

        Accepted until the wait has elapsed; an accepted cancel always ends
        the execution Cancelled, never Publishing. Returns False once the
        execution is publishing (or past it) or a cancel was already accepted.
        """
        with self._lock:
            state = self._status.state
            if self._cancel_requested or state not in CANCELLABLE_STATES:
                return False
            self._cancel_requested = True
        # Token callbacks wake the suspended thread; run them outside the lock
        self.token.cancel()
        self.log.info(f"Cancellation requested in state {state.value}")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until terminal. Returns False on timeout."""
        return self._done.wait(timeout)

    def run(self) -> None:
        """Drive the state machine until a terminal state is reached."""
        try:
            while True:
                status = self.status
                if status.is_terminal:
                    return
                try:
                    self._step(status)
                except Exception as e:
                    self.log.exception(f"Step {status.state.value} failed unexpectedly")
                    self._fail_step(e)
        finally:
            self._done.set()

    def _step(self, status: ExecutionStatus) -> None:
        state = status.state
        if state is S.STARTED:
            if self.context is None:
                raise ValueError("execution has no replay context")
            self._record(t.REPLAY_TRIGGERED, {"context": self.context.to_dict()})
        elif state is S.CALCULATING:
            self._calculate(status)
        elif state is S.WAITING:
            self._wait(status)
        elif state is S.PUBLISHING:
            self._publish(status)
        elif state is S.CLASSIFYING:
            self._classify(status)

    def _calculate(self, status: ExecutionStatus) -> None:
        try:
            decision = self.calculator.compute(status.context)
        except CalculationError as e:
            self.log.warning(f"Wait calculation failed: {e}")
            self._record(t.CALCULATION_FAILED, {"error": str(e)}, unless_cancelled=True)
            return

        metrics.observe_wait(decision.delay_seconds)
        self._record(
            t.WAIT_CALCULATED,
            {
                "delay_seconds": decision.delay_seconds,
                "wake_at_ms": self.clock.now_ms() + decision.delay_seconds * 1000,
            },
            unless_cancelled=True,
        )

    def _wait(self, status: ExecutionStatus) -> None:
        self.log.info(f"Waiting {status.delay_seconds}s before publishing")
        try:
            self.suspender.wait_until_ms(status.wake_at_ms, self.token)
        except ExecutionCancelled as e:
            self._record(t.EXECUTION_CANCELLED, {"reason": str(e)})
            return
        # A cancel can land between the timer firing and this transition
        self._record(t.WAIT_ELAPSED, unless_cancelled=True)

    def _publish(self, status: ExecutionStatus) -> None:
        try:
            result = self.publisher.publish(status.context.event)
        except TransportError as e:
            self.log.error(f"Publish failed: {e}")
            self._record(t.PUBLISH_FAILED, {"error": str(e)})
            self._emit_record(status.context, "TransportError", str(e))
            return
        self._record(t.PUBLISH_COMPLETED, {"result": result.to_dict()})

    def _classify(self, status: ExecutionStatus) -> None:
        result = status.result
        outcome = classify(result)
        payload: Dict[str, Any] = {"outcome": outcome.value}
        error = None
        if outcome is Outcome.FAILED:
            error = f"{result.failed_entry_count} of {result.total_entry_count} entries failed"
            payload["error"] = error
            payload["failed_entries"] = failed_entries(result)
        self._record(t.OUTCOME_CLASSIFIED, payload)
        self._emit_record(status.context, outcome.value, error)

    def _fail_step(self, error: Exception) -> None:
        payload = {"error": f"{type(error).__name__}: {error}"}
        try:
            self._record(t.STEP_FAILED, payload)
        except Exception:
            # Journal unusable: keep the failure visible in memory at least
            self.log.exception("Could not journal step failure")
            self._record(t.STEP_FAILED, payload, persist=False)

    def _record(
        self,
        event_type: str,
        payload: Optional[Dict[str, Any]] = None,
        persist: bool = True,
        unless_cancelled: bool = False,
    ) -> None:
        """
        Apply and journal one transition.

        With unless_cancelled, an accepted cancel replaces the transition
        with ExecutionCancelled. The check and the transition happen under
        the same lock as cancel(), so a cancel is either rejected or wins.
        """
        with self._lock:
            current = self._status
            if unless_cancelled and self._cancel_requested:
                event_type = t.EXECUTION_CANCELLED
                payload = {"reason": f"execution cancelled in state {current.state.value}"}
            event = Event(
                type=event_type,
                aggregate_id=self.execution_id,
                ts=self.clock.now_ms(),
                payload=payload or {},
                meta=self.meta,
            )
            new_status = self.reducer.apply(current, event)
            if persist and self.journal is not None:
                event = self.journal.append(event)
            self._status = new_status

        metrics.track_transition(event_type)
        self.log.info(f"{current.state.value} -> {new_status.state.value} ({event_type})")
        if new_status.is_terminal:
            metrics.track_terminal(new_status.outcome.value)
        for listener in list(self.listeners):
            try:
                listener(new_status, event)
            except Exception:
                self.log.exception("Status listener failed")

    def _emit_record(self, context: ReplayContext, outcome: str, error: Optional[str]) -> None:
        record = PublishRecord(
            timestamp_ms=self.clock.now_ms(),
            id=context.event.correlation_id(),
            execution_id=self.execution_id,
            replay_name=context.replay_name,
            outcome=outcome,
            error=error,
        )
        try:
            self.sink.emit(record)
        except Exception:
            self.log.exception("Publish record sink raised")
