"""
Execution journal storage and integrity verification.

This module provides:
- ExecutionJournal: Abstract interface for transition persistence
- MemoryJournal: In-process journal
- FileJournal: File-based append-only storage (JSONL)
- Integrity: Hash chain verification
"""

from .store import ExecutionJournal, MemoryJournal
from .file_store import FileJournal
from .integrity import ZERO_HASH, chain_record, hash_event, verify_record

__all__ = [
    "ExecutionJournal",
    "MemoryJournal",
    "FileJournal",
    "ZERO_HASH",
    "chain_record",
    "hash_event",
    "verify_record",
]
