"""
Clocks and cancellation tokens.

Executions never read the system time directly: the orchestrator injects a
Clock. SystemClock is used in production; ManualClock lets tests move time
forward explicitly so suspended executions wake deterministically.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List


class CancellationToken:
    """
    One-shot cancellation flag for a single execution.

    Callbacks registered with add_callback() run once, on the thread that
    calls cancel(). Registering after cancellation runs the callback
    immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> bool:
        """
        Cancel the token.

        Returns:
            True if this call cancelled it, False if it was already cancelled
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def wait(self, timeout: float) -> bool:
        """Block up to timeout seconds. Returns True if cancelled."""
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


class Clock(ABC):
    """Time source and timer for executions."""

    @abstractmethod
    def now(self) -> float:
        """Seconds since epoch."""
        ...

    def now_ms(self) -> int:
        return int(round(self.now() * 1000))

    @abstractmethod
    def wait_until(self, deadline: float, token: CancellationToken) -> bool:
        """
        Block until deadline (seconds since epoch) or cancellation.

        Returns:
            True if the deadline was reached, False if the token was cancelled
        """
        ...


class SystemClock(Clock):
    """Wall clock. Waits are timer based (no polling)."""

    def now(self) -> float:
        return time.time()

    def wait_until(self, deadline: float, token: CancellationToken) -> bool:
        while not token.cancelled:
            remaining = deadline - self.now()
            if remaining <= 0:
                return True
            # Event.wait may return early on clock adjustments; re-check the deadline.
            if token.wait(remaining):
                break
        return False


class ManualClock(Clock):
    """
    Controllable clock for tests.

    Time only moves on advance(). Waiters block on a condition variable and
    are woken by advance() or by cancellation of their token.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._cond = threading.Condition()
        self._sleepers = 0

    def now(self) -> float:
        with self._cond:
            return self._now

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("cannot move time backwards")
        with self._cond:
            self._now += seconds
            self._cond.notify_all()

    @property
    def sleepers(self) -> int:
        with self._cond:
            return self._sleepers

    def wait_for_sleepers(self, count: int, timeout: float = 5.0) -> bool:
        """Block until at least count threads are suspended in wait_until()."""
        with self._cond:
            return self._cond.wait_for(lambda: self._sleepers >= count, timeout)

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def wait_until(self, deadline: float, token: CancellationToken) -> bool:
        token.add_callback(self._wake)
        try:
            with self._cond:
                self._sleepers += 1
                self._cond.notify_all()
                try:
                    while not token.cancelled and self._now < deadline:
                        self._cond.wait()
                finally:
                    self._sleepers -= 1
                    self._cond.notify_all()
                return not token.cancelled
        finally:
            token.remove_callback(self._wake)
