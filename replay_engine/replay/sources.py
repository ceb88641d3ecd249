"""
Trigger sources: where replay trigger messages come from.

- read_messages(): JSON lines from a file or stdin
- SqsTriggerSource: long-polls an SQS queue that is the replay rule's target
"""

import json
import logging
import threading
from typing import Any, Dict, Iterable, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..core.errors import TransportError, TriggerError
from .orchestrator import ReplayOrchestrator

logger = logging.getLogger(__name__)


def read_messages(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """
    Decode JSON-lines trigger messages. Blank lines are skipped.

    Raises:
        TriggerError: On a line that is not valid JSON (with its line number)
    """
    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            yield json.loads(line)
        except ValueError as e:
            raise TriggerError(f"line {lineno}: invalid JSON: {e}") from e


class SqsTriggerSource:
    """
    Receives trigger messages from SQS and dispatches them.

    A message is deleted once its execution is dispatched. Malformed messages
    are left on the queue so the queue's redrive policy can dead-letter them.
    """

    def __init__(
        self,
        client: Any,
        queue_url: str,
        wait_time_seconds: int = 20,
        max_messages: int = 10,
    ) -> None:
        """
        Args:
            client: boto3 "sqs" client
            queue_url: Queue receiving the replay rule's target input
            wait_time_seconds: Long-poll duration (0-20)
            max_messages: Messages per receive (1-10)
        """
        self.client = client
        self.queue_url = queue_url
        self.wait_time_seconds = wait_time_seconds
        self.max_messages = max_messages

    def receive(self) -> List[Dict[str, Any]]:
        """
        Raises:
            TransportError: If the receive call fails
        """
        try:
            out = self.client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=self.max_messages,
                WaitTimeSeconds=self.wait_time_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise TransportError(f"Failed to receive from {self.queue_url}: {e}") from e
        return out.get("Messages", [])

    def poll_once(self, orchestrator: ReplayOrchestrator) -> List[str]:
        """
        Receive one batch and dispatch it.

        Returns:
            Ids of the dispatched executions
        """
        dispatched = []
        for msg in self.receive():
            try:
                execution_id = orchestrator.dispatch_message(msg["Body"])
            except TriggerError as e:
                logger.warning(f"Skipping malformed trigger {msg.get('MessageId')}: {e}")
                continue
            dispatched.append(execution_id)
            try:
                self.client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=msg["ReceiptHandle"])
            except (BotoCoreError, ClientError) as e:
                # Redelivery starts a new attempt of the same event
                logger.warning(f"Failed to delete message {msg.get('MessageId')}: {e}")
        return dispatched

    def run(
        self,
        orchestrator: ReplayOrchestrator,
        stop: threading.Event,
        max_polls: Optional[int] = None,
    ) -> int:
        """
        Poll until stop is set (or max_polls batches were received).

        Returns:
            Number of executions dispatched
        """
        total = 0
        polls = 0
        while not stop.is_set():
            if max_polls is not None and polls >= max_polls:
                break
            total += len(self.poll_once(orchestrator))
            polls += 1
        return total
