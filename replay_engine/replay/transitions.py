"""
Replay execution state machine.

    Started -> Calculating -> Waiting -> Publishing -> Classifying -> Succeeded | Failed
                   |            |            |
                   v            v            v
           Failed|Cancelled  Cancelled      Failed

Each arrow is a journal event type with a pure handler. build_reducer()
wires them into a Reducer that rejects any other transition.
"""

from ..core.events import Event, PublishResult, ReplayContext
from ..core.reducer import Reducer
from ..core.state import ExecutionState, ExecutionStatus, Outcome

REPLAY_TRIGGERED = "ReplayTriggered"
WAIT_CALCULATED = "WaitCalculated"
CALCULATION_FAILED = "CalculationFailed"
WAIT_ELAPSED = "WaitElapsed"
EXECUTION_CANCELLED = "ExecutionCancelled"
PUBLISH_COMPLETED = "PublishCompleted"
PUBLISH_FAILED = "PublishFailed"
OUTCOME_CLASSIFIED = "OutcomeClassified"
STEP_FAILED = "StepFailed"

S = ExecutionState


def handle_replay_triggered(cur: ExecutionStatus, ev: Event) -> ExecutionStatus:
    return cur.advance(
        ev.ts,
        state=S.CALCULATING,
        context=ReplayContext.from_dict(ev.payload["context"]),
    )


def handle_wait_calculated(cur: ExecutionStatus, ev: Event) -> ExecutionStatus:
    return cur.advance(
        ev.ts,
        state=S.WAITING,
        delay_seconds=int(ev.payload["delay_seconds"]),
        wake_at_ms=int(ev.payload["wake_at_ms"]),
    )


def handle_wait_elapsed(cur: ExecutionStatus, ev: Event) -> ExecutionStatus:
    return cur.advance(ev.ts, state=S.PUBLISHING)


def handle_cancelled(cur: ExecutionStatus, ev: Event) -> ExecutionStatus:
    return cur.advance(
        ev.ts,
        state=S.CANCELLED,
        outcome=Outcome.CANCELLED,
        error=ev.payload.get("reason"),
    )


def handle_publish_completed(cur: ExecutionStatus, ev: Event) -> ExecutionStatus:
    return cur.advance(
        ev.ts,
        state=S.CLASSIFYING,
        result=PublishResult.from_dict(ev.payload["result"]),
    )


def handle_failed(cur: ExecutionStatus, ev: Event) -> ExecutionStatus:
    """Shared by CalculationFailed, PublishFailed and StepFailed."""
    return cur.advance(
        ev.ts,
        state=S.FAILED,
        outcome=Outcome.FAILED,
        error=ev.payload.get("error"),
    )


def handle_outcome_classified(cur: ExecutionStatus, ev: Event) -> ExecutionStatus:
    outcome = Outcome(ev.payload["outcome"])
    if outcome is Outcome.SUCCEEDED:
        return cur.advance(ev.ts, state=S.SUCCEEDED, outcome=outcome)
    if outcome is Outcome.FAILED:
        return cur.advance(
            ev.ts,
            state=S.FAILED,
            outcome=outcome,
            error=ev.payload.get("error"),
            failed_entries=list(ev.payload.get("failed_entries", [])),
        )
    raise ValueError(f"classification cannot produce {outcome.value}")


def build_reducer() -> Reducer:
    r = Reducer()
    r.register(REPLAY_TRIGGERED, handle_replay_triggered, [S.STARTED])
    r.register(WAIT_CALCULATED, handle_wait_calculated, [S.CALCULATING])
    r.register(CALCULATION_FAILED, handle_failed, [S.CALCULATING])
    r.register(WAIT_ELAPSED, handle_wait_elapsed, [S.WAITING])
    r.register(EXECUTION_CANCELLED, handle_cancelled, [S.CALCULATING, S.WAITING])
    r.register(PUBLISH_COMPLETED, handle_publish_completed, [S.PUBLISHING])
    r.register(PUBLISH_FAILED, handle_failed, [S.PUBLISHING])
    r.register(OUTCOME_CLASSIFIED, handle_outcome_classified, [S.CLASSIFYING])
    # Unexpected errors inside a step; keeps every execution observable
    r.register(
        STEP_FAILED,
        handle_failed,
        [S.STARTED, S.CALCULATING, S.WAITING, S.PUBLISHING, S.CLASSIFYING],
    )
    return r
