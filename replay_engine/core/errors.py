"""
Exception types for the replay engine.
"""

from typing import Any, Dict, List, Optional


class ReplayError(Exception):
    """Base class for replay engine errors."""
    pass


class CalculationError(ReplayError):
    """Raised when the wait time cannot be computed from a malformed context."""
    pass


class TransportError(ReplayError):
    """Raised when the publish call itself could not be made (network, auth)."""
    pass


class PartialPublishFailure(ReplayError):
    """
    Raised when a publish call succeeded but one or more entries failed.

    Attributes:
        failed_entries: Per-entry error details for the failed entries
    """

    def __init__(self, message: str, failed_entries: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.failed_entries = list(failed_entries or [])


class ExecutionCancelled(ReplayError):
    """Raised by a suspension when its execution was cancelled."""
    pass


class InvalidTransitionError(ReplayError):
    """Raised when no handler is registered or the transition is not allowed."""
    pass


class JournalError(ReplayError):
    """Raised when journal operations or hash chain verification fail."""
    pass


class TriggerError(ReplayError):
    """Raised when a replay trigger message cannot be parsed."""
    pass


class ConfigError(ReplayError):
    """Raised when required configuration is missing or invalid."""
    pass


class ArchiveReplayError(ReplayError):
    """Raised when an archive replay fails, is cancelled, or cannot be started."""
    pass
