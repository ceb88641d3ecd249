"""
Tests for the ebreplay command line.
"""

import json
import logging

import boto3
import pytest
from typer.testing import CliRunner

try:
    from moto import mock_aws
except ImportError:
    mock_aws = None

from replay_cli.commands.run import exit_code
from replay_cli.main import app
from replay_engine.core.state import ExecutionState, ExecutionStatus
from replay_engine.log.file_store import FileJournal
from replay_engine.tests.fakes import T0, failed_result, make_event, make_orchestrator, trigger_for, FakePublisher

runner = CliRunner()
requires_moto = pytest.mark.skipif(mock_aws is None, reason="moto not installed")


@pytest.fixture(autouse=True)
def restore_root_logger(monkeypatch, tmp_path):
    # Commands configure logging on the root logger; keep each test isolated
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def journal_path(tmp_path):
    path = str(tmp_path / "executions.jsonl")
    journal = FileJournal(path)
    ok, _ = make_orchestrator(journal=journal)
    ok.wait(ok.dispatch(trigger_for(make_event(id="good"))), 5.0)
    bad, _ = make_orchestrator(journal=journal, publisher=FakePublisher(result=failed_result()))
    bad.wait(bad.dispatch(trigger_for(make_event(id="bad"))), 5.0)
    return path


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "ebreplay CLI" in result.stdout


def test_status_json(journal_path):
    result = runner.invoke(app, ["status", "--journal", journal_path, "--json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["applied"] == 10
    states = sorted((e["event_id"], e["state"]) for e in data["executions"])
    assert states == [("bad", "Failed"), ("good", "Succeeded")]


def test_status_table(journal_path):
    result = runner.invoke(app, ["status", "--journal", journal_path])
    assert result.exit_code == 0
    assert "2 executions" in result.stdout


def test_status_pending_is_empty_after_completion(journal_path):
    result = runner.invoke(app, ["status", "--journal", journal_path, "--pending", "--json"])
    assert json.loads(result.stdout)["executions"] == []


def test_status_unknown_execution(journal_path):
    result = runner.invoke(app, ["status", "--journal", journal_path, "--execution", "nope-0", "--json"])
    assert result.exit_code == 2
    assert json.loads(result.stdout)["error"] == "execution not found"


def test_status_reads_journal_from_environment(journal_path, monkeypatch):
    monkeypatch.setenv("EBREPLAY_JOURNAL_PATH", journal_path)
    result = runner.invoke(app, ["status", "--json"])
    assert result.exit_code == 0


def test_status_tampered_journal(journal_path):
    with open(journal_path, "a") as f:
        f.write('{"prev_hash": "x", "event_hash": "y", "event": {"type": "A", "aggregate_id": "a", "ts": 1}}\n')
    result = runner.invoke(app, ["status", "--journal", journal_path, "--json"])
    assert result.exit_code == 2
    assert "hash chain broken" in json.loads(result.stdout)["error"]


def test_run_requires_a_trigger_source():
    result = runner.invoke(app, ["run", "--bus", "replay-bus", "--log-level", "ERROR"])
    assert result.exit_code == 2


def test_run_without_bus_is_config_error(tmp_path):
    triggers = tmp_path / "triggers.jsonl"
    triggers.write_text("{}\n")
    result = runner.invoke(app, ["run", "--input", str(triggers), "--json", "--log-level", "ERROR"])
    assert result.exit_code == 2
    assert "EBREPLAY_EVENT_BUS_NAME" in json.loads(result.stdout)["error"]


@requires_moto
def test_run_publishes_triggers(tmp_path, monkeypatch):
    triggers = tmp_path / "triggers.jsonl"
    lines = [
        {"originalEvent": {"source": "eb-test-app", "detail-type": "test-event",
                           "detail": {"id": i}, "time": T0, "replay-name": "Jan-1-13.00.00"},
         "startTime": T0}
        for i in range(3)
    ]
    triggers.write_text("\n".join(json.dumps(line) for line in lines) + "\n")
    journal = str(tmp_path / "run.jsonl")
    monkeypatch.setenv("EBREPLAY_EVENT_BUS_NAME", "replay-bus")

    with mock_aws():
        boto3.client("events", region_name="us-east-1").create_event_bus(Name="replay-bus")
        result = runner.invoke(app, [
            "run", "--input", str(triggers), "--journal", journal,
            "--replays-only", "--timeout", "30", "--json", "--log-level", "ERROR",
        ])

    assert result.exit_code == 0, result.stdout
    executions = json.loads(result.stdout)["executions"]
    assert len(executions) == 3
    assert {e["state"] for e in executions} == {"Succeeded"}
    assert {e["replay_name"] for e in executions} == {"Jan-1-13.00.00"}

    status = runner.invoke(app, ["status", "--journal", journal, "--json"])
    assert json.loads(status.stdout)["applied"] == 15


def trigger_line(id):
    return json.dumps({
        "originalEvent": {"source": "eb-test-app", "detail-type": "test-event",
                          "detail": {"id": id}, "time": T0, "replay-name": "Jan-1-13.00.00"},
        "startTime": T0,
    })


def test_run_reports_executions_dispatched_before_bad_line(tmp_path, monkeypatch):
    orchestrator, _ = make_orchestrator()
    monkeypatch.setattr("replay_cli.commands.run.build_orchestrator", lambda *a, **kw: orchestrator)
    triggers = tmp_path / "triggers.jsonl"
    triggers.write_text(trigger_line(1) + "\n{not json\n" + trigger_line(3) + "\n")

    result = runner.invoke(app, [
        "run", "--input", str(triggers), "--timeout", "5", "--json", "--log-level", "ERROR",
    ])

    assert result.exit_code == 2
    data = json.loads(result.stdout)
    assert "line 2" in data["error"]
    assert [e["state"] for e in data["executions"]] == ["Succeeded"]


def test_run_interrupted_dispatch_cancels_pending(tmp_path, monkeypatch):
    orchestrator, _ = make_orchestrator()
    monkeypatch.setattr("replay_cli.commands.run.build_orchestrator", lambda *a, **kw: orchestrator)

    def dispatch_then_interrupt(orch, input_path):
        # Five minutes out on a clock that never advances
        orch.dispatch(trigger_for(make_event(time="2024-01-01T20:20:00Z")))
        raise KeyboardInterrupt

    monkeypatch.setattr("replay_cli.commands.run._dispatch_file", dispatch_then_interrupt)

    result = runner.invoke(app, [
        "run", "--input", "triggers.jsonl", "--timeout", "5", "--json", "--log-level", "ERROR",
    ])

    assert result.exit_code == 1
    data = json.loads(result.stdout)
    assert "error" not in data
    assert [e["state"] for e in data["executions"]] == ["Cancelled"]


def test_exit_code():
    ok = ExecutionStatus(execution_id="a-0", state=ExecutionState.SUCCEEDED)
    failed = ExecutionStatus(execution_id="b-0", state=ExecutionState.FAILED)
    cancelled = ExecutionStatus(execution_id="c-0", state=ExecutionState.CANCELLED)
    assert exit_code({"a-0": ok}) == 0
    assert exit_code({"a-0": ok, "b-0": failed}) == 1
    assert exit_code({"c-0": cancelled}) == 1
