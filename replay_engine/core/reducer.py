"""
Reducer: guarded state transition functions.

Every execution state change is a journal Event applied through the reducer.
Handlers must be:
- Pure (no side effects, no I/O)
- Deterministic (same status + event -> same status)
"""

from typing import Callable, Dict, FrozenSet, Iterable, Tuple

from .errors import InvalidTransitionError
from .events import Event
from .state import ExecutionState, ExecutionStatus

# Handler signature: (current_status, event) -> new_status
Handler = Callable[[ExecutionStatus, Event], ExecutionStatus]


class Reducer:
    """
    Registry of transition handlers keyed by event type.

    Each handler is registered together with the states it may be applied
    from. Applying an event from any other state raises
    InvalidTransitionError, so illegal transitions never reach a handler.

    Usage:
        reducer = Reducer()
        reducer.register("WaitElapsed", handle_wait_elapsed, [ExecutionState.WAITING])
        new_status = reducer.apply(status, event)
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, Tuple[FrozenSet[ExecutionState], Handler]] = {}

    def register(self, event_type: str, handler: Handler, from_states: Iterable[ExecutionState]) -> None:
        """
        Register transition handler.

        Args:
            event_type: Event type string
            handler: Pure function (current_status, event) -> new_status
            from_states: States the transition is allowed from
        """
        self._handlers[event_type] = (frozenset(from_states), handler)

    def allowed(self, event_type: str, state: ExecutionState) -> bool:
        entry = self._handlers.get(event_type)
        return entry is not None and state in entry[0]

    def apply(self, status: ExecutionStatus, event: Event) -> ExecutionStatus:
        """
        Apply event to an execution status.

        Raises:
            InvalidTransitionError: If no handler is registered for the event
                type, the event targets another execution, or the transition
                is not allowed from the current state
        """
        if event.type not in self._handlers:
            raise InvalidTransitionError(f"No handler for event type: {event.type}")
        if event.aggregate_id != status.execution_id:
            raise InvalidTransitionError(
                f"Event for {event.aggregate_id} applied to execution {status.execution_id}"
            )

        from_states, handler = self._handlers[event.type]
        if status.state not in from_states:
            raise InvalidTransitionError(
                f"{event.type} not allowed from state {status.state.value} "
                f"(execution {status.execution_id})"
            )
        return handler(status, event)
