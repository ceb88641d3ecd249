"""
File-based execution journal using append-only JSONL format.

Each line is a hash chain record with prev_hash, event_hash, and event data.
"""

import json
import os
import threading
from dataclasses import replace
from typing import Iterator, Optional, Tuple

from ..core.canonical import canonical_json_str
from ..core.errors import JournalError
from ..core.events import Event
from .integrity import ZERO_HASH, chain_record, verify_record
from .store import ExecutionJournal

try:
    import fcntl
except ImportError:  # Windows or unsupported platform
    fcntl = None


class FileJournal(ExecutionJournal):
    """
    File-based append-only journal.

    Storage format: JSONL (newline-delimited JSON)
    Each line: {"prev_hash": "...", "event_hash": "...", "event": {...}}

    Guarantees:
    - Append-only (no mutations)
    - Fsync after each append (durability)
    - Hash chain integrity, verified on read
    - Appends serialized across threads (lock) and processes (flock)
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        # (file size, last seq, last hash) observed after our last append or scan
        self._tail: Optional[Tuple[int, int, str]] = None

        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        if not os.path.exists(path):
            with open(path, "wb") as f:
                f.write(b"")

    def _last_seq_and_hash(self, f) -> Tuple[int, str]:
        """
        Last sequence number and hash, (-1, ZERO_HASH) for an empty journal.

        Rescans only when another writer grew the file since our last look.
        """
        f.seek(0, os.SEEK_END)
        size = f.tell()
        if self._tail is not None and self._tail[0] == size:
            return self._tail[1], self._tail[2]

        last_seq = -1
        last_hash = ZERO_HASH
        f.seek(0)
        for line in f:
            if not line.strip():
                continue
            rec = json.loads(line)
            last_seq = rec["event"]["seq"]
            last_hash = rec["event_hash"]
        self._tail = (size, last_seq, last_hash)
        return last_seq, last_hash

    def append(self, event: Event) -> Event:
        try:
            with self._lock, open(self.path, "a+b") as f:
                if fcntl:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    last_seq, last_hash = self._last_seq_and_hash(f)
                    stored = replace(event, seq=last_seq + 1)
                    rec = chain_record(last_hash, stored)
                    line = (canonical_json_str(rec) + "\n").encode("utf-8")

                    f.seek(0, os.SEEK_END)
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
                    self._tail = (f.tell(), stored.require_seq(), rec["event_hash"])
                    return stored
                finally:
                    if fcntl:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except (OSError, ValueError) as ex:
            raise JournalError(f"Failed to append to journal {self.path}: {ex}") from ex

    def read(self, aggregate_id: Optional[str] = None, from_seq: int = 0) -> Iterator[Event]:
        prev_hash = ZERO_HASH
        prev_seq = -1
        try:
            with open(self.path, "rb") as f:
                for line in f:
                    if not line.strip():
                        continue
                    rec = json.loads(line)
                    event = verify_record(prev_hash, rec)
                    seq = event.require_seq()
                    if seq != prev_seq + 1:
                        raise ValueError(f"sequence gap: prev_seq={prev_seq}, current_seq={seq}")
                    prev_hash = rec["event_hash"]
                    prev_seq = seq

                    if seq < from_seq:
                        continue
                    if aggregate_id is not None and event.aggregate_id != aggregate_id:
                        continue
                    yield event
        except FileNotFoundError:
            raise
        except (OSError, ValueError, KeyError) as ex:
            raise JournalError(f"Invalid journal {self.path}: {ex}") from ex
