"""
Test doubles for executions: controllable publisher, recording sink,
event builders.
"""

import threading
from typing import Any, Callable, List, Optional

from replay_engine.bus.publisher import Publisher
from replay_engine.core.clock import ManualClock
from replay_engine.core.events import ArchivedEvent, EntryResult, PublishResult
from replay_engine.observability.sink import PublishRecord, RecordSink
from replay_engine.pacing import TimeCompressionCalculator
from replay_engine.replay import ReplayOrchestrator, ReplayTrigger
from replay_engine.suspend import Suspender

T0 = "2024-01-01T12:00:00Z"
CLOCK_START = 1_704_110_400.0  # 2024-01-01T12:00:00Z


def make_event(time: Optional[str] = T0, id: Any = 1, source: str = "eb-test-app") -> ArchivedEvent:
    return ArchivedEvent(source=source, detail_type="Order", detail={"id": id}, time=time)


def trigger_for(event: ArchivedEvent, window_start: str = T0, replay_name: str = "Jan-1-12.00.00") -> ReplayTrigger:
    return ReplayTrigger(event=event, replay_name=replay_name, window_start=window_start)


def ok_result() -> PublishResult:
    return PublishResult(failed_entry_count=0, total_entry_count=1, entries=(EntryResult(event_id="e-1"),))


def failed_result() -> PublishResult:
    return PublishResult(
        failed_entry_count=1,
        total_entry_count=1,
        entries=(EntryResult(error_code="InternalFailure", error_message="boom"),),
    )


class FakePublisher(Publisher):
    """Returns a fixed result (or calls a function) and records every call."""

    def __init__(self, result: Any = None, behavior: Optional[Callable[[ArchivedEvent], PublishResult]] = None) -> None:
        self.result = result or ok_result()
        self.behavior = behavior
        self.calls: List[ArchivedEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: ArchivedEvent) -> PublishResult:
        with self._lock:
            self.calls.append(event)
        if self.behavior is not None:
            return self.behavior(event)
        return self.result


class RecordingSink(RecordSink):
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.records: List[PublishRecord] = []
        self.error = error

    def emit(self, record: PublishRecord) -> None:
        self.records.append(record)
        if self.error is not None:
            raise self.error


def make_orchestrator(publisher=None, sink=None, journal=None, calculator=None, clock=None):
    clock = clock or ManualClock(start=CLOCK_START)
    orchestrator = ReplayOrchestrator(
        calculator=calculator or TimeCompressionCalculator(factor=0.01),
        publisher=publisher or FakePublisher(),
        suspender=Suspender(clock),
        journal=journal,
        sink=sink or RecordingSink(),
        clock=clock,
    )
    return orchestrator, clock
