"""
Archive replay starter.

Points the replay rule at the replay target, starts an EventBridge archive
replay over a time window and polls it until it finishes. Selecting and
paginating the archived events is done by EventBridge itself.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..core.errors import ArchiveReplayError, PartialPublishFailure
from ..core.events import ArchivedEvent, PublishResult, format_timestamp
from .classifier import ensure_published, failed_entries
from .publisher import EventBridgePublisher

logger = logging.getLogger(__name__)

REPLAY_TARGET_ID = "rule"

STATE_COMPLETED = "COMPLETED"
STATE_FAILED = "FAILED"
STATE_CANCELLED = "CANCELLED"


def replay_name_for(now: datetime) -> str:
    """
    Replay name derived from a timestamp, e.g. "Oct-19-14.03.05".

    Day of month is space padded before the separators are applied, so the
    5th becomes "Oct--5-14.03.05".
    """
    stamp = f"{now:%b} {now.day:>2} {now:%H:%M:%S}"
    return stamp.replace(" ", "-").replace(":", ".")


def input_template(start_time: datetime) -> str:
    """Rule target input: the original event plus the replay window start."""
    return '{"originalEvent": <originalEvent>, "startTime": "%s"}' % format_timestamp(start_time)


@dataclass(frozen=True)
class ReplayWindow:
    name: str
    start: datetime
    end: datetime

    @staticmethod
    def last(duration: timedelta, now: Optional[datetime] = None) -> "ReplayWindow":
        end = now or datetime.now(timezone.utc)
        return ReplayWindow(name=replay_name_for(end), start=end - duration, end=end)


class ArchiveReplayStarter:
    """
    Drives an archive replay through the EventBridge API.

    Usage:
        starter = ArchiveReplayStarter(make_client("events"))
        starter.upsert_rule_target(rule, bus_arn, role_arn, target_arn, window.start)
        arn = starter.start_replay(window, bus_arn, archive_arn)
        starter.wait_for_replay(window.name)
    """

    def __init__(self, client: Any, sleep: Callable[[float], None] = time.sleep) -> None:
        self.client = client
        self.sleep = sleep

    def upsert_rule_target(
        self,
        rule_name: str,
        event_bus: str,
        role_arn: str,
        target_arn: str,
        start_time: datetime,
    ) -> None:
        """
        Create or replace the replay rule's target.

        Rule changes take a short time to apply, so events replayed right after
        this call may still be routed by the previous target.

        Raises:
            ArchiveReplayError: If the target cannot be put
        """
        logger.info(f"Upserting target for rule: {rule_name}")
        try:
            out = self.client.put_targets(
                Rule=rule_name,
                EventBusName=event_bus,
                Targets=[
                    {
                        "Id": REPLAY_TARGET_ID,
                        "Arn": target_arn,
                        "RoleArn": role_arn,
                        "InputTransformer": {
                            "InputPathsMap": {"originalEvent": "$"},
                            "InputTemplate": input_template(start_time),
                        },
                        "RetryPolicy": {"MaximumRetryAttempts": 0},
                    }
                ],
            )
        except (BotoCoreError, ClientError) as e:
            raise ArchiveReplayError(f"Failed to put targets on {rule_name}: {e}") from e

        if out.get("FailedEntryCount", 0) > 0:
            raise ArchiveReplayError(f"Failed to put targets: {out.get('FailedEntries')}")
        logger.info(f"Target for rule {rule_name} ready")

    def start_replay(self, window: ReplayWindow, event_bus_arn: str, archive_arn: str) -> str:
        """
        Start replaying the archive window onto the bus.

        Returns:
            Replay ARN

        Raises:
            ArchiveReplayError: If the replay cannot be started or is cancelled
        """
        logger.info(
            f"Starting replay {window.name} from {format_timestamp(window.start)} "
            f"to {format_timestamp(window.end)}"
        )
        try:
            out = self.client.start_replay(
                ReplayName=window.name,
                EventSourceArn=archive_arn,
                EventStartTime=window.start,
                EventEndTime=window.end,
                Destination={"Arn": event_bus_arn},
            )
        except (BotoCoreError, ClientError) as e:
            raise ArchiveReplayError(f"Failed to start replay {window.name}: {e}") from e

        replay_arn = out.get("ReplayArn", window.name)
        if out.get("State") == STATE_CANCELLED:
            raise ArchiveReplayError(f"replay {replay_arn} was cancelled")
        return replay_arn

    def wait_for_replay(
        self,
        replay_name: str,
        poll_interval: float = 5.0,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Poll DescribeReplay until the replay completes.

        Returns:
            Final state ("COMPLETED")

        Raises:
            ArchiveReplayError: If the replay fails, is cancelled, or times out
        """
        waited = 0.0
        while True:
            try:
                out = self.client.describe_replay(ReplayName=replay_name)
            except (BotoCoreError, ClientError) as e:
                raise ArchiveReplayError(f"Failed to describe replay {replay_name}: {e}") from e

            state = out.get("State", "")
            reason = out.get("StateReason", "")
            logger.info(f"Replay {replay_name} is {state}")

            if state == STATE_COMPLETED:
                return state
            if state in (STATE_FAILED, STATE_CANCELLED):
                raise ArchiveReplayError(f"replay {replay_name} is {state}: {reason}")
            if timeout is not None and waited >= timeout:
                raise ArchiveReplayError(f"replay {replay_name} still {state} after {timeout}s")

            self.sleep(poll_interval)
            waited += poll_interval


def make_seed_events(
    count: int,
    source: str = "eb-test-app",
    now: Callable[[], datetime] = None,
) -> List[ArchivedEvent]:
    """Synthetic events with {"id": <RFC3339 nano timestamp>} details."""
    clock = now or (lambda: datetime.now(timezone.utc))
    events = []
    for _ in range(count):
        ts = clock()
        stamp = ts.strftime("%Y-%m-%dT%H:%M:%S.%f") + "000Z"
        events.append(
            ArchivedEvent(
                source=source,
                detail_type="test-event",
                detail=json.dumps({"id": stamp}),
                time=format_timestamp(ts),
            )
        )
    return events


def seed_events(publisher: EventBridgePublisher, events: List[ArchivedEvent]) -> PublishResult:
    """
    Publish seed events so the archive has something to replay.

    Raises:
        PartialPublishFailure: If any entry failed
        TransportError: If a publish call could not be made
    """
    result = publisher.publish_batch(events)
    try:
        return ensure_published(result)
    except PartialPublishFailure:
        logger.error(f"Failed to put events: {failed_entries(result)}")
        raise
