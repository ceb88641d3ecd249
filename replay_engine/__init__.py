"""
EventBridge Archive Replay Engine

Paced re-publishing of archived events with an observable, resumable
per-event state machine.
"""

__version__ = "0.1.0"
