"""
ExecutionJournal abstract interface and in-memory implementation.

The journal records every execution transition so statuses can be rebuilt,
queried out-of-process, and resumed after a restart.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, Iterator, List, Optional

from ..core.errors import JournalError
from ..core.events import Event
from .integrity import ZERO_HASH, chain_record, verify_record


class ExecutionJournal(ABC):
    """
    Abstract journal interface.

    All implementations must guarantee:
    - Append-only (no updates, no deletes)
    - Sequential ordering (events indexed by seq)
    - Appends from concurrent executions are serialized
    """

    @abstractmethod
    def append(self, event: Event) -> Event:
        """
        Append event to the journal.

        Returns:
            The stored event with seq assigned

        Raises:
            JournalError: If append fails
        """
        ...

    @abstractmethod
    def read(self, aggregate_id: Optional[str] = None, from_seq: int = 0) -> Iterator[Event]:
        """
        Read events in sequence order.

        Args:
            aggregate_id: Filter by execution id (None = all)
            from_seq: Start from this sequence number (inclusive)

        Raises:
            JournalError: If the hash chain is invalid
        """
        ...


class MemoryJournal(ExecutionJournal):
    """In-process journal. Hash chained like the file journal."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: List[Dict[str, Any]] = []

    def append(self, event: Event) -> Event:
        with self._lock:
            last_hash = self._records[-1]["event_hash"] if self._records else ZERO_HASH
            stored = replace(event, seq=len(self._records))
            self._records.append(chain_record(last_hash, stored))
            return stored

    def read(self, aggregate_id: Optional[str] = None, from_seq: int = 0) -> Iterator[Event]:
        with self._lock:
            records = list(self._records)

        prev_hash = ZERO_HASH
        for rec in records:
            try:
                event = verify_record(prev_hash, rec)
            except ValueError as e:
                raise JournalError(str(e)) from e
            prev_hash = rec["event_hash"]
            if event.require_seq() < from_seq:
                continue
            if aggregate_id is not None and event.aggregate_id != aggregate_id:
                continue
            yield event

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
