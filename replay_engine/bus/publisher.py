"""
Publisher: re-emits archived events onto the target bus.

Side effects are isolated here. A publisher makes exactly one PutEvents call
per publish() and never retries; retry policy belongs to the caller.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from ..core.errors import TransportError
from ..core.events import ArchivedEvent, EntryResult, PublishResult
from ..observability import metrics

logger = logging.getLogger(__name__)

# PutEvents accepts at most 10 entries per request
MAX_ENTRIES_PER_REQUEST = 10


class Publisher(ABC):
    """Target bus interface."""

    @abstractmethod
    def publish(self, event: ArchivedEvent) -> PublishResult:
        """
        Publish one archived event.

        Raises:
            TransportError: If the publish call could not be made
        """
        ...


class EventBridgePublisher(Publisher):
    """
    Publishes to an EventBridge bus with PutEvents.

    Source, DetailType, Detail and Time are taken from the archived event
    unchanged. Entry-level failures are reported in the PublishResult, not
    raised.
    """

    def __init__(self, client: Any, event_bus_name: str) -> None:
        """
        Args:
            client: boto3 "events" client
            event_bus_name: Target bus name or ARN
        """
        self.client = client
        self.event_bus_name = event_bus_name

    def build_entry(self, event: ArchivedEvent) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "Source": event.source,
            "DetailType": event.detail_type,
            "Detail": event.detail_json(),
            "EventBusName": self.event_bus_name,
        }
        if event.time is not None:
            entry["Time"] = event.timestamp()
        return entry

    def publish(self, event: ArchivedEvent) -> PublishResult:
        return self._put([event])

    def publish_batch(self, events: Sequence[ArchivedEvent]) -> PublishResult:
        """
        Publish many events, one PutEvents call per 10 entries.

        Raises:
            TransportError: On the first call that could not be made
            ValueError: If events is empty
        """
        if not events:
            raise ValueError("publish_batch requires at least one event")
        results = [
            self._put(events[i:i + MAX_ENTRIES_PER_REQUEST])
            for i in range(0, len(events), MAX_ENTRIES_PER_REQUEST)
        ]
        return PublishResult.merge(results)

    def _put(self, events: Sequence[ArchivedEvent]) -> PublishResult:
        entries = [self.build_entry(e) for e in events]
        try:
            with metrics.track_publish_duration():
                response = self.client.put_events(Entries=entries)
        except (BotoCoreError, ClientError) as e:
            raise TransportError(f"PutEvents to {self.event_bus_name} failed: {e}") from e

        results = _entry_results(response.get("Entries", []))
        failed = int(response.get("FailedEntryCount", 0))
        logger.debug(
            f"PutEvents to {self.event_bus_name}: {len(entries)} entries, {failed} failed"
        )
        return PublishResult(
            failed_entry_count=failed,
            total_entry_count=len(entries),
            entries=tuple(results),
        )


def _entry_results(raw: List[Dict[str, Any]]) -> List[EntryResult]:
    return [
        EntryResult(
            event_id=r.get("EventId"),
            error_code=r.get("ErrorCode"),
            error_message=r.get("ErrorMessage"),
        )
        for r in raw
    ]
