"""
Event bus integration.

This module provides:
- Publisher / EventBridgePublisher: re-publish archived events
- classify: publish result -> Outcome
- ArchiveReplayStarter: start and monitor EventBridge archive replays
"""

from .publisher import EventBridgePublisher, MAX_ENTRIES_PER_REQUEST, Publisher
from .classifier import classify, ensure_published, failed_entries
from .archive import ArchiveReplayStarter, ReplayWindow, make_seed_events, replay_name_for, seed_events
from .clients import make_client

__all__ = [
    "EventBridgePublisher",
    "MAX_ENTRIES_PER_REQUEST",
    "Publisher",
    "classify",
    "ensure_published",
    "failed_entries",
    "ArchiveReplayStarter",
    "ReplayWindow",
    "make_seed_events",
    "replay_name_for",
    "seed_events",
    "make_client",
]
