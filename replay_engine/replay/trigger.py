"""
Replay trigger messages.

A trigger is either the rule target input
    {"originalEvent": <envelope>, "startTime": "<RFC3339>"}
or a bare event envelope
    {"source": ..., "detail-type": ..., "detail": ..., "time": ..., "replay-name": ...}
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..core.errors import TriggerError
from ..core.events import ArchivedEvent

REPLAY_NAME_FIELD = "replay-name"


@dataclass(frozen=True)
class ReplayTrigger:
    event: ArchivedEvent
    replay_name: str
    window_start: Optional[str] = None


def parse_trigger(
    message: Union[str, bytes, Dict[str, Any]],
    require_replay_name: bool = False,
) -> ReplayTrigger:
    """
    Parse a trigger message.

    Args:
        message: JSON text or decoded object
        require_replay_name: Reject envelopes without the replay-name marker
            (live traffic)

    Raises:
        TriggerError: If the message is not a valid trigger
    """
    if isinstance(message, (str, bytes)):
        try:
            message = json.loads(message)
        except ValueError as e:
            raise TriggerError(f"trigger is not valid JSON: {e}") from e
    if not isinstance(message, dict):
        raise TriggerError(f"trigger must be a JSON object, got {type(message).__name__}")

    if "originalEvent" in message:
        envelope = message["originalEvent"]
        window_start = message.get("startTime")
    else:
        envelope = message
        window_start = None

    if not isinstance(envelope, dict):
        raise TriggerError("originalEvent must be a JSON object")
    for key in ("source", "detail-type"):
        if not isinstance(envelope.get(key), str) or not envelope[key]:
            raise TriggerError(f"event envelope missing {key!r}")

    replay_name = envelope.get(REPLAY_NAME_FIELD) or ""
    if require_replay_name and not replay_name:
        raise TriggerError("event envelope has no replay-name marker")

    return ReplayTrigger(
        event=ArchivedEvent.from_envelope(envelope),
        replay_name=replay_name,
        window_start=window_start,
    )
