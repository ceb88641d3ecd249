"""
Stable identifier generation.
"""

import hashlib

from .canonical import canonical_json_bytes
from .events import ArchivedEvent


def stable_id(*parts: str) -> str:
    """
    Generate stable ID derived from inputs (no randomness).

    Returns:
        SHA-256 hash as hex string
    """
    raw = "|".join(parts).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def event_key(replay_name: str, event: ArchivedEvent) -> str:
    """Stable key for one archived event within one replay."""
    body = canonical_json_bytes(event.to_dict()).decode("utf-8")
    return stable_id(replay_name, body)[:16]


def execution_id(replay_name: str, event: ArchivedEvent, attempt_index: int) -> str:
    """
    Execution identifier: event key plus attempt index.

    Example:
        execution_id("Oct-19-14.03.05", event, 0) -> "3f2a9c0d1b7e4a55-0"
    """
    return f"{event_key(replay_name, event)}-{attempt_index}"
