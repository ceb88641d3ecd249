"""
Replay orchestration.

Replay turns each trigger message into a ReplayExecution that computes its
wait, suspends, re-publishes and classifies the outcome.
"""

from .execution import Listener, ReplayExecution
from .orchestrator import ReplayOrchestrator
from .runner import RebuildResult, rebuild
from .sources import SqsTriggerSource, read_messages
from .transitions import build_reducer
from .trigger import ReplayTrigger, parse_trigger

__all__ = [
    "Listener",
    "ReplayExecution",
    "ReplayOrchestrator",
    "RebuildResult",
    "rebuild",
    "SqsTriggerSource",
    "read_messages",
    "build_reducer",
    "ReplayTrigger",
    "parse_trigger",
]
