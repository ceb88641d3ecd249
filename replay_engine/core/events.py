"""
Data model for archived events, replay contexts and publish results.

Archived events are immutable records read from the archive. Journal events
are immutable records of execution state changes.
"""

import json
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp into an aware UTC datetime.

    Accepts a trailing "Z" and fractional seconds of any precision
    (nanosecond precision is truncated to microseconds).

    Raises:
        ValueError: If value is empty or not RFC3339
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("timestamp is empty")
    text = value.strip()
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format datetime as RFC3339 UTC with a "Z" suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class ArchivedEvent:
    """
    Event envelope as recorded in the archive.

    Fields:
        source: Event source (e.g., "eb-test-app")
        detail_type: Event detail-type
        detail: Opaque JSON payload
        time: RFC3339 timestamp exactly as archived (None when absent)
        event_id: Original event id, if the envelope carried one
    """
    source: str
    detail_type: str
    detail: Any = field(default_factory=dict)
    time: Optional[str] = None
    event_id: Optional[str] = None

    def timestamp(self) -> datetime:
        """
        Parsed event time.

        Raises:
            ValueError: If time is missing or malformed
        """
        if self.time is None:
            raise ValueError("archived event has no time")
        return parse_timestamp(self.time)

    def detail_json(self) -> str:
        """Detail as JSON text. String details are passed through untouched."""
        if isinstance(self.detail, str):
            return self.detail
        return json.dumps(self.detail, separators=(",", ":"), ensure_ascii=False)

    def correlation_id(self) -> Optional[str]:
        """Identifier used to correlate downstream records back to this event."""
        if isinstance(self.detail, dict) and self.detail.get("id") is not None:
            return str(self.detail["id"])
        return self.event_id

    @staticmethod
    def from_envelope(envelope: Dict[str, Any]) -> "ArchivedEvent":
        return ArchivedEvent(
            source=envelope["source"],
            detail_type=envelope["detail-type"],
            detail=envelope.get("detail", {}),
            time=envelope.get("time"),
            event_id=envelope.get("id"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "detail-type": self.detail_type,
            "detail": self.detail,
            "time": self.time,
            "id": self.event_id,
        }


@dataclass(frozen=True)
class ReplayContext:
    """
    Read-only input for one replay attempt of one archived event.

    Fields:
        event: Archived event being replayed
        replay_name: Name of the archive replay that produced the event
        attempt_index: Number of earlier executions for the same event
        window_start: Start of the replayed archive window (RFC3339)
    """
    event: ArchivedEvent
    replay_name: str
    attempt_index: int = 0
    window_start: Optional[str] = None

    def __post_init__(self) -> None:
        if self.attempt_index < 0:
            raise ValueError(f"attempt_index must be >= 0, got {self.attempt_index}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.to_dict(),
            "replay_name": self.replay_name,
            "attempt_index": self.attempt_index,
            "window_start": self.window_start,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ReplayContext":
        return ReplayContext(
            event=ArchivedEvent.from_envelope(data["event"]),
            replay_name=data.get("replay_name", ""),
            attempt_index=int(data.get("attempt_index", 0)),
            window_start=data.get("window_start"),
        )


@dataclass(frozen=True)
class WaitDecision:
    """Delay before an event may be re-published. Always finite and >= 0."""
    delay_seconds: int

    def __post_init__(self) -> None:
        if isinstance(self.delay_seconds, bool) or not isinstance(self.delay_seconds, int):
            raise ValueError(f"delay_seconds must be an int, got {self.delay_seconds!r}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {self.delay_seconds}")


@dataclass(frozen=True)
class EntryResult:
    """Outcome of one entry in a publish call."""
    event_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_code is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class PublishResult:
    """
    Result of one publish call.

    Invariant: 0 <= failed_entry_count <= total_entry_count, total_entry_count >= 1.
    """
    failed_entry_count: int
    total_entry_count: int = 1
    entries: Tuple[EntryResult, ...] = ()

    def __post_init__(self) -> None:
        if self.total_entry_count < 1:
            raise ValueError(f"total_entry_count must be >= 1, got {self.total_entry_count}")
        if self.failed_entry_count < 0:
            raise ValueError(f"failed_entry_count must be >= 0, got {self.failed_entry_count}")
        if self.failed_entry_count > self.total_entry_count:
            raise ValueError(
                f"failed_entry_count ({self.failed_entry_count}) exceeds "
                f"total_entry_count ({self.total_entry_count})"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "failed_entry_count": self.failed_entry_count,
            "total_entry_count": self.total_entry_count,
            "entries": [e.to_dict() for e in self.entries],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PublishResult":
        return PublishResult(
            failed_entry_count=int(data["failed_entry_count"]),
            total_entry_count=int(data.get("total_entry_count", 1)),
            entries=tuple(EntryResult(**e) for e in data.get("entries", [])),
        )

    @staticmethod
    def merge(results: List["PublishResult"]) -> "PublishResult":
        """Combine results of several publish calls into one."""
        return PublishResult(
            failed_entry_count=sum(r.failed_entry_count for r in results),
            total_entry_count=sum(r.total_entry_count for r in results),
            entries=tuple(e for r in results for e in r.entries),
        )


def is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass(frozen=True)
class Event:
    """
    Immutable journal record of one execution transition.

    Fields:
        type: Transition type (e.g., "WaitCalculated", "PublishCompleted")
        aggregate_id: Execution identifier
        ts: Timestamp in milliseconds since epoch (from the execution clock)
        payload: Transition-specific data
        meta: Metadata (writer, host, etc.)
        seq: Sequence number (assigned by the journal)
    """
    type: str
    aggregate_id: str
    ts: int
    payload: Dict[str, Any] = field(default_factory=dict)
    meta: Dict[str, Any] = field(default_factory=dict)
    seq: Optional[int] = None

    def require_seq(self) -> int:
        """
        Get sequence number or raise error if not assigned.

        Raises:
            ValueError: If seq is None
        """
        if self.seq is None:
            raise ValueError("Event.seq is required but None")
        return self.seq

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "aggregate_id": self.aggregate_id,
            "ts": self.ts,
            "payload": self.payload,
            "meta": self.meta,
            "seq": self.seq,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Event":
        return Event(
            type=data["type"],
            aggregate_id=data["aggregate_id"],
            ts=data["ts"],
            payload=data.get("payload", {}),
            meta=data.get("meta", {}),
            seq=data.get("seq"),
        )
