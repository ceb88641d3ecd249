"""
Tests for the execution journal, rebuild and resume after restart.
"""

import json

import pytest

from replay_engine.core.errors import CalculationError, JournalError
from replay_engine.core.events import Event, PublishResult, ReplayContext
from replay_engine.core.ids import execution_id as make_execution_id
from replay_engine.core.state import ExecutionState
from replay_engine.log.file_store import FileJournal
from replay_engine.log.store import MemoryJournal
from replay_engine.pacing import WaitTimeCalculator
from replay_engine.replay import transitions as t
from replay_engine.replay.runner import rebuild
from replay_engine.tests.fakes import (
    CLOCK_START,
    T0,
    FakePublisher,
    RecordingSink,
    make_event,
    make_orchestrator,
    trigger_for,
)

TIMEOUT = 5.0
NOW_MS = int(CLOCK_START * 1000)


class ExplodingCalculator(WaitTimeCalculator):
    def compute(self, context):
        raise CalculationError("must not be recalculated")


def write_events(journal, execution_id, events):
    for event_type, payload in events:
        journal.append(Event(type=event_type, aggregate_id=execution_id, ts=NOW_MS, payload=payload))


def interrupted_execution(journal, upto, delay_seconds=30):
    """Journal an execution that stopped after the first `upto` transitions."""
    event = make_event(id="resumed")
    execution_id = make_execution_id("Jan-1-12.00.00", event, 0)
    context = ReplayContext(event=event, replay_name="Jan-1-12.00.00", window_start=T0)
    steps = [
        (t.REPLAY_TRIGGERED, {"context": context.to_dict()}),
        (t.WAIT_CALCULATED, {"delay_seconds": delay_seconds, "wake_at_ms": NOW_MS + delay_seconds * 1000}),
        (t.WAIT_ELAPSED, {}),
        (t.PUBLISH_COMPLETED, {"result": PublishResult(failed_entry_count=0).to_dict()}),
    ]
    write_events(journal, execution_id, steps[:upto])
    return execution_id


@pytest.fixture(params=["memory", "file"])
def journal(request, tmp_path):
    if request.param == "memory":
        return MemoryJournal()
    return FileJournal(str(tmp_path / "journal" / "executions.jsonl"))


def test_append_assigns_sequence(journal):
    first = journal.append(Event(type="A", aggregate_id="x", ts=1))
    second = journal.append(Event(type="B", aggregate_id="y", ts=2))
    assert (first.seq, second.seq) == (0, 1)
    assert [e.type for e in journal.read()] == ["A", "B"]
    assert [e.type for e in journal.read(aggregate_id="y")] == ["B"]
    assert [e.type for e in journal.read(from_seq=1)] == ["B"]


def test_completed_run_rebuilds_to_same_status(journal):
    orchestrator, _ = make_orchestrator(journal=journal)
    execution_id = orchestrator.dispatch(trigger_for(make_event()))
    live = orchestrator.wait(execution_id, TIMEOUT)

    result = rebuild(journal)
    assert result.applied == 5
    assert result.statuses[execution_id] == live
    assert result.pending() == {}


def test_rebuild_up_to_sequence(journal):
    orchestrator, _ = make_orchestrator(journal=journal)
    execution_id = orchestrator.dispatch(trigger_for(make_event()))
    orchestrator.wait(execution_id, TIMEOUT)

    partial = rebuild(journal, to_seq=1)
    assert partial.applied == 2
    assert partial.statuses[execution_id].state is ExecutionState.WAITING
    assert execution_id in partial.pending()


def test_file_journal_survives_reopen(tmp_path):
    path = str(tmp_path / "executions.jsonl")
    FileJournal(path).append(Event(type="A", aggregate_id="x", ts=1))
    reopened = FileJournal(path)
    stored = reopened.append(Event(type="B", aggregate_id="x", ts=2))
    assert stored.seq == 1
    assert [e.seq for e in reopened.read()] == [0, 1]


def test_tampered_file_journal_is_rejected(tmp_path):
    path = tmp_path / "executions.jsonl"
    journal = FileJournal(str(path))
    journal.append(Event(type="A", aggregate_id="x", ts=1, payload={"delay_seconds": 3}))
    journal.append(Event(type="B", aggregate_id="x", ts=2))

    lines = path.read_text().splitlines()
    rec = json.loads(lines[0])
    rec["event"]["payload"]["delay_seconds"] = 0
    lines[0] = json.dumps(rec)
    path.write_text("\n".join(lines) + "\n")

    with pytest.raises(JournalError, match="hash mismatch"):
        list(FileJournal(str(path)).read())


def test_truncated_file_journal_is_rejected(tmp_path):
    path = tmp_path / "executions.jsonl"
    journal = FileJournal(str(path))
    for i in range(3):
        journal.append(Event(type="A", aggregate_id="x", ts=i))

    lines = path.read_text().splitlines()
    path.write_text("\n".join([lines[0], lines[2]]) + "\n")

    with pytest.raises(JournalError):
        list(FileJournal(str(path)).read())


def test_resume_requires_journal():
    orchestrator, _ = make_orchestrator()
    with pytest.raises(JournalError):
        orchestrator.resume()


def test_resume_from_waiting_waits_only_remaining_time(journal):
    execution_id = interrupted_execution(journal, upto=2, delay_seconds=30)
    publisher = FakePublisher()
    orchestrator, clock = make_orchestrator(
        publisher=publisher, journal=journal, calculator=ExplodingCalculator(),
    )
    # Restarted 20s after the wait began
    clock.advance(20)

    assert orchestrator.resume() == [execution_id]
    assert clock.wait_for_sleepers(1, TIMEOUT)
    assert orchestrator.status(execution_id).state is ExecutionState.WAITING

    clock.advance(10)
    status = orchestrator.wait(execution_id, TIMEOUT)
    assert status.state is ExecutionState.SUCCEEDED
    assert status.delay_seconds == 30
    assert [e.detail["id"] for e in publisher.calls] == ["resumed"]


def test_resume_past_wake_time_publishes_immediately(journal):
    execution_id = interrupted_execution(journal, upto=2, delay_seconds=30)
    publisher = FakePublisher()
    orchestrator, clock = make_orchestrator(publisher=publisher, journal=journal)
    clock.advance(60)

    orchestrator.resume()
    assert orchestrator.wait(execution_id, TIMEOUT).state is ExecutionState.SUCCEEDED
    assert len(publisher.calls) == 1


def test_resume_from_publishing_publishes_again(journal):
    execution_id = interrupted_execution(journal, upto=3)
    publisher = FakePublisher()
    orchestrator, _ = make_orchestrator(publisher=publisher, journal=journal)

    orchestrator.resume()
    assert orchestrator.wait(execution_id, TIMEOUT).state is ExecutionState.SUCCEEDED
    assert len(publisher.calls) == 1


def test_resume_from_classifying_does_not_publish(journal):
    execution_id = interrupted_execution(journal, upto=4)
    publisher = FakePublisher()
    sink = RecordingSink()
    orchestrator, _ = make_orchestrator(publisher=publisher, journal=journal, sink=sink)

    orchestrator.resume()
    status = orchestrator.wait(execution_id, TIMEOUT)
    assert status.state is ExecutionState.SUCCEEDED
    assert publisher.calls == []
    assert [r.id for r in sink.records] == ["resumed"]


def test_resume_skips_terminal_and_continues_attempt_numbering(journal):
    first, _ = make_orchestrator(journal=journal)
    done_id = first.dispatch(trigger_for(make_event(id="resumed")))
    first.wait(done_id, TIMEOUT)

    second, _ = make_orchestrator(journal=journal)
    assert second.resume() == []
    assert second.status(done_id).state is ExecutionState.SUCCEEDED

    next_id = second.dispatch(trigger_for(make_event(id="resumed")))
    assert next_id.endswith("-1")
    assert next_id != done_id
    assert second.wait(next_id, TIMEOUT).context.attempt_index == 1


def test_resumed_cancel_is_journaled(journal):
    execution_id = interrupted_execution(journal, upto=2, delay_seconds=300)
    orchestrator, clock = make_orchestrator(journal=journal)
    orchestrator.resume()
    assert clock.wait_for_sleepers(1, TIMEOUT)

    assert orchestrator.cancel(execution_id)
    assert orchestrator.wait(execution_id, TIMEOUT).state is ExecutionState.CANCELLED
    assert rebuild(journal).statuses[execution_id].state is ExecutionState.CANCELLED
