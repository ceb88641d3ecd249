"""
Tests for trigger parsing and trigger sources.
"""

import io
import json
import threading

import boto3
import pytest

try:
    from moto import mock_aws
except ImportError:
    mock_aws = None

from replay_engine.core.errors import TransportError, TriggerError
from replay_engine.core.state import ExecutionState
from replay_engine.replay.sources import SqsTriggerSource, read_messages
from replay_engine.replay.trigger import parse_trigger
from replay_engine.tests.fakes import T0, FakePublisher, make_orchestrator

requires_moto = pytest.mark.skipif(mock_aws is None, reason="moto not installed")

ENVELOPE = {
    "version": "0",
    "id": "6a7e8feb-b491-4cf7-a9f1-bf3703467718",
    "source": "eb-test-app",
    "detail-type": "test-event",
    "time": "2024-01-01T12:16:40Z",
    "detail": {"id": "2024-01-01T12:16:40.000000001Z"},
    "replay-name": "Jan-1-13.00.00",
}


def rule_input(envelope=ENVELOPE, start=T0):
    return {"originalEvent": envelope, "startTime": start}


def test_parse_rule_target_input():
    trigger = parse_trigger(json.dumps(rule_input()))
    assert trigger.window_start == T0
    assert trigger.replay_name == "Jan-1-13.00.00"
    assert trigger.event.source == "eb-test-app"
    assert trigger.event.detail_type == "test-event"
    assert trigger.event.time == "2024-01-01T12:16:40Z"
    assert trigger.event.event_id == ENVELOPE["id"]
    assert trigger.event.correlation_id() == "2024-01-01T12:16:40.000000001Z"


def test_parse_bare_envelope_from_bytes():
    trigger = parse_trigger(json.dumps(ENVELOPE).encode("utf-8"))
    assert trigger.window_start is None
    assert trigger.event.detail == ENVELOPE["detail"]


@pytest.mark.parametrize("message", [
    "not json",
    "[1, 2]",
    {"originalEvent": "text"},
    {"detail-type": "x"},
    {"source": "", "detail-type": "x"},
    {"source": "s"},
])
def test_malformed_triggers_rejected(message):
    with pytest.raises(TriggerError):
        parse_trigger(message)


def test_live_traffic_rejected_when_replay_name_required():
    live = dict(ENVELOPE)
    del live["replay-name"]
    assert parse_trigger(live).replay_name == ""
    with pytest.raises(TriggerError, match="replay-name"):
        parse_trigger(live, require_replay_name=True)


def test_read_messages_skips_blank_lines():
    lines = io.StringIO(json.dumps(rule_input()) + "\n\n" + json.dumps(ENVELOPE) + "\n")
    assert len(list(read_messages(lines))) == 2


def test_read_messages_reports_line_number():
    with pytest.raises(TriggerError, match="line 2"):
        list(read_messages(["{}", "{oops"]))


@requires_moto
@mock_aws
def test_sqs_source_dispatches_and_deletes():
    sqs = boto3.client("sqs", region_name="us-east-1")
    url = sqs.create_queue(QueueName="replay-triggers")["QueueUrl"]
    sqs.send_message(QueueUrl=url, MessageBody=json.dumps(rule_input()))
    sqs.send_message(QueueUrl=url, MessageBody="garbage")

    publisher = FakePublisher()
    orchestrator, clock = make_orchestrator(publisher=publisher)
    source = SqsTriggerSource(sqs, url, wait_time_seconds=0)

    dispatched = source.poll_once(orchestrator)

    assert len(dispatched) == 1
    assert clock.wait_for_sleepers(1, 5.0)
    clock.advance(10)
    assert orchestrator.wait(dispatched[0], 5.0).state is ExecutionState.SUCCEEDED

    attrs = sqs.get_queue_attributes(
        QueueUrl=url,
        AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
    )["Attributes"]
    # Only the malformed message is left (in flight until its visibility timeout)
    assert attrs["ApproximateNumberOfMessages"] == "0"
    assert attrs["ApproximateNumberOfMessagesNotVisible"] == "1"


@requires_moto
@mock_aws
def test_sqs_source_run_stops_after_max_polls():
    sqs = boto3.client("sqs", region_name="us-east-1")
    url = sqs.create_queue(QueueName="replay-triggers")["QueueUrl"]
    orchestrator, _ = make_orchestrator()

    total = SqsTriggerSource(sqs, url, wait_time_seconds=0).run(orchestrator, threading.Event(), max_polls=2)

    assert total == 0


@requires_moto
@mock_aws
def test_sqs_source_stops_when_stop_is_set():
    sqs = boto3.client("sqs", region_name="us-east-1")
    url = sqs.create_queue(QueueName="replay-triggers")["QueueUrl"]
    stop = threading.Event()
    stop.set()

    assert SqsTriggerSource(sqs, url, wait_time_seconds=0).run(make_orchestrator()[0], stop) == 0


@requires_moto
@mock_aws
def test_sqs_receive_failure_is_transport_error():
    sqs = boto3.client("sqs", region_name="us-east-1")
    source = SqsTriggerSource(sqs, "https://sqs.us-east-1.amazonaws.com/123456789012/missing", wait_time_seconds=0)
    with pytest.raises(TransportError):
        source.receive()
