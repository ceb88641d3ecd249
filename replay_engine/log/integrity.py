"""
Hash chain integrity for the execution journal.

Each journal record carries the hash of the previous record, so a rewritten
or truncated journal is detected on read.
"""

import hashlib
from typing import Any, Dict

from ..core.canonical import canonical_json_bytes
from ..core.events import Event

ZERO_HASH = "0" * 64


def hash_event(prev_hash: str, event: Event) -> str:
    """
    Compute hash of event chained to previous hash.

    Hash input: prev_hash + canonical_json(event_data)

    Args:
        prev_hash: Hash of previous event (or ZERO_HASH for genesis)
        event: Event to hash (seq must be assigned)

    Returns:
        SHA-256 hash as hex string
    """
    b = prev_hash.encode("utf-8") + canonical_json_bytes(event.to_dict())
    return hashlib.sha256(b).hexdigest()


def chain_record(prev_hash: str, event: Event) -> Dict[str, Any]:
    """
    Create hash chain record for storage.

    Returns:
        {"prev_hash": ..., "event_hash": ..., "event": {...}}
    """
    return {
        "prev_hash": prev_hash,
        "event_hash": hash_event(prev_hash, event),
        "event": event.to_dict(),
    }


def verify_record(prev_hash: str, rec: Dict[str, Any]) -> Event:
    """
    Verify one chain record against the previous hash.

    Returns:
        The record's event

    Raises:
        ValueError: If the chain link or the event hash does not match
    """
    event = Event.from_dict(rec["event"])
    if rec["prev_hash"] != prev_hash:
        raise ValueError(
            f"hash chain broken at seq={event.seq}: "
            f"expected prev_hash={prev_hash}, got {rec['prev_hash']}"
        )
    recomputed = hash_event(prev_hash, event)
    if recomputed != rec["event_hash"]:
        raise ValueError(
            f"hash mismatch at seq={event.seq}: "
            f"expected {rec['event_hash']}, recomputed {recomputed}"
        )
    return event
