"""
Suspension of a single execution for its computed delay.

Suspensions are timer based and only block the calling execution thread.
Cancelling the execution's token aborts the wait promptly.
"""

from .core.clock import CancellationToken, Clock, SystemClock
from .core.errors import ExecutionCancelled


class Suspender:
    """
    Suspends the current execution on an injectable clock.

    Usage:
        suspender = Suspender(SystemClock())
        suspender.wait_for(30, token)   # raises ExecutionCancelled on cancel
    """

    def __init__(self, clock: Clock = None) -> None:
        self.clock = clock or SystemClock()

    def wait_for(self, delay_seconds: int, token: CancellationToken) -> None:
        self.wait_until_ms(self.clock.now_ms() + delay_seconds * 1000, token)

    def wait_until_ms(self, deadline_ms: int, token: CancellationToken) -> None:
        """
        Suspend until an absolute deadline (ms since epoch).

        A deadline already in the past does not suspend.

        Raises:
            ExecutionCancelled: If token is (or becomes) cancelled
        """
        if token.cancelled:
            raise ExecutionCancelled("execution cancelled before wait")
        if deadline_ms <= self.clock.now_ms():
            return
        if not self.clock.wait_until(deadline_ms / 1000.0, token):
            raise ExecutionCancelled("execution cancelled while waiting")
