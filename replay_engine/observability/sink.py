"""
Publish record sinks.

After every completed publish attempt the orchestrator emits a PublishRecord
so downstream tooling can correlate replayed traffic with the original
events. Delivery is best-effort: records that cannot be delivered go to a
dead-letter queue when one is configured, and a sink never raises into the
execution that emitted the record.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..bus.clients import error_code
from ..core.canonical import canonical_json_str
from . import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishRecord:
    """
    Fields:
        timestamp_ms: When the publish attempt completed (ms since epoch)
        id: Correlation id of the original event (detail.id or event id)
        execution_id: Execution that published
        replay_name: Replay the event came from
        outcome: "Succeeded", "Failed", or "TransportError"
        error: Error text, if any
    """
    timestamp_ms: int
    id: Optional[str]
    execution_id: str
    replay_name: str
    outcome: str
    error: Optional[str] = None

    def message(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "execution_id": self.execution_id,
            "replay_name": self.replay_name,
            "outcome": self.outcome,
        }
        if self.error:
            data["error"] = self.error
        return data

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.message(), timestamp=self.timestamp_ms)


class RecordSink(ABC):
    """Destination for publish records. emit() must not raise."""

    @abstractmethod
    def emit(self, record: PublishRecord) -> None:
        ...


class LoggingSink(RecordSink):
    """Writes records to the log. The default sink."""

    def emit(self, record: PublishRecord) -> None:
        logger.info(
            "publish record",
            extra={
                "record": record.to_dict(),
                "execution_id": record.execution_id,
                "replay_name": record.replay_name,
            },
        )


class SqsDeadLetterQueue:
    """Dead-letter destination for undeliverable records."""

    def __init__(self, client: Any, queue_url: str) -> None:
        """
        Args:
            client: boto3 "sqs" client
            queue_url: Dead-letter queue URL
        """
        self.client = client
        self.queue_url = queue_url

    def send(self, record: PublishRecord, reason: str) -> bool:
        """Returns True if the record was dead-lettered."""
        body = canonical_json_str({"record": record.to_dict(), "reason": reason})
        try:
            self.client.send_message(QueueUrl=self.queue_url, MessageBody=body)
            return True
        except (BotoCoreError, ClientError) as e:
            metrics.track_sink_failure("dlq")
            logger.error(f"Failed to dead-letter record for {record.execution_id}: {e}")
            return False


class CloudWatchLogsSink(RecordSink):
    """
    Writes records to a CloudWatch Logs stream.

    Each log event carries the record timestamp and a JSON message keyed by
    the original event id.
    """

    def __init__(
        self,
        client: Any,
        log_group: str,
        log_stream: str,
        dead_letter: Optional[SqsDeadLetterQueue] = None,
    ) -> None:
        """
        Args:
            client: boto3 "logs" client
            log_group: Existing log group name
            log_stream: Log stream name (created on first use)
            dead_letter: Fallback for records that cannot be written
        """
        self.client = client
        self.log_group = log_group
        self.log_stream = log_stream
        self.dead_letter = dead_letter
        self._stream_ready = False

    def _ensure_stream(self) -> None:
        if self._stream_ready:
            return
        try:
            self.client.create_log_stream(logGroupName=self.log_group, logStreamName=self.log_stream)
        except ClientError as e:
            if error_code(e) != "ResourceAlreadyExistsException":
                raise
        self._stream_ready = True

    def emit(self, record: PublishRecord) -> None:
        self.emit_many([record])

    def emit_many(self, records: List[PublishRecord]) -> None:
        if not records:
            return
        log_events = [
            {"timestamp": r.timestamp_ms, "message": canonical_json_str(r.message())}
            for r in sorted(records, key=lambda r: r.timestamp_ms)
        ]
        try:
            self._ensure_stream()
            self.client.put_log_events(
                logGroupName=self.log_group,
                logStreamName=self.log_stream,
                logEvents=log_events,
            )
        except (BotoCoreError, ClientError) as e:
            metrics.track_sink_failure("logs")
            logger.warning(f"Failed to write {len(records)} publish records to {self.log_group}: {e}")
            self._dead_letter(records, str(e))

    def _dead_letter(self, records: List[PublishRecord], reason: str) -> None:
        if self.dead_letter is None:
            logger.error(f"No dead-letter queue configured, dropping {len(records)} publish records")
            return
        for record in records:
            self.dead_letter.send(record, reason)
