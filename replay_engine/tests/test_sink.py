"""
Tests for publish record sinks (CloudWatch Logs with SQS dead-letter queue).
"""

import json
import logging
import time

import boto3
import pytest

try:
    from moto import mock_aws
except ImportError:
    mock_aws = None

from replay_engine.observability.sink import (
    CloudWatchLogsSink,
    LoggingSink,
    PublishRecord,
    SqsDeadLetterQueue,
)

pytestmark = pytest.mark.skipif(mock_aws is None, reason="moto not installed")

GROUP = "/ebreplay/records"


def record(id="order-1", outcome="Succeeded", error=None):
    return PublishRecord(
        timestamp_ms=int(time.time() * 1000),
        id=id,
        execution_id="abc-0",
        replay_name="Jan-1-12.00.00",
        outcome=outcome,
        error=error,
    )


@mock_aws
def test_records_written_to_log_stream():
    logs = boto3.client("logs", region_name="us-east-1")
    logs.create_log_group(logGroupName=GROUP)
    sink = CloudWatchLogsSink(logs, GROUP, "replay")

    sink.emit(record(id="order-1"))
    sink.emit(record(id="order-2", outcome="Failed", error="1 of 1 entries failed"))

    events = logs.get_log_events(logGroupName=GROUP, logStreamName="replay")["events"]
    messages = [json.loads(e["message"]) for e in events]
    assert [m["id"] for m in messages] == ["order-1", "order-2"]
    assert messages[1]["outcome"] == "Failed"
    assert messages[1]["error"] == "1 of 1 entries failed"


@mock_aws
def test_existing_stream_is_reused():
    logs = boto3.client("logs", region_name="us-east-1")
    logs.create_log_group(logGroupName=GROUP)
    logs.create_log_stream(logGroupName=GROUP, logStreamName="replay")

    CloudWatchLogsSink(logs, GROUP, "replay").emit(record())

    events = logs.get_log_events(logGroupName=GROUP, logStreamName="replay")["events"]
    assert len(events) == 1


@mock_aws
def test_undeliverable_records_go_to_dead_letter_queue():
    logs = boto3.client("logs", region_name="us-east-1")
    sqs = boto3.client("sqs", region_name="us-east-1")
    dlq_url = sqs.create_queue(QueueName="records-dlq")["QueueUrl"]
    sink = CloudWatchLogsSink(logs, "/missing/group", "replay", dead_letter=SqsDeadLetterQueue(sqs, dlq_url))

    sink.emit_many([record(id="a"), record(id="b")])

    messages = sqs.receive_message(QueueUrl=dlq_url, MaxNumberOfMessages=10)["Messages"]
    bodies = [json.loads(m["Body"]) for m in messages]
    assert sorted(b["record"]["id"] for b in bodies) == ["a", "b"]
    assert all("ResourceNotFoundException" in b["reason"] for b in bodies)


@mock_aws
def test_sink_never_raises_without_dead_letter_queue():
    logs = boto3.client("logs", region_name="us-east-1")
    CloudWatchLogsSink(logs, "/missing/group", "replay").emit(record())


@mock_aws
def test_dead_letter_failure_reported_as_false():
    sqs = boto3.client("sqs", region_name="us-east-1")
    dlq = SqsDeadLetterQueue(sqs, "https://sqs.us-east-1.amazonaws.com/123456789012/missing")
    assert dlq.send(record(), "log group gone") is False


def test_logging_sink(caplog):
    caplog.set_level(logging.INFO, logger="replay_engine.observability.sink")
    LoggingSink().emit(record(id="order-9"))
    (entry,) = caplog.records
    assert entry.record["id"] == "order-9"
    assert entry.execution_id == "abc-0"
    assert entry.replay_name == "Jan-1-12.00.00"
