"""
Wait time calculation: how long an archived event waits before re-publishing.

Calculators are pure: one ReplayContext in, one WaitDecision out. They never
fail for "no delay needed" (that is delay 0), only for malformed input.
"""

import math
from abc import ABC, abstractmethod
from typing import Optional

from .core.errors import CalculationError
from .core.events import ReplayContext, WaitDecision, is_finite_number, parse_timestamp


class WaitTimeCalculator(ABC):
    """Pacing policy interface."""

    @abstractmethod
    def compute(self, context: ReplayContext) -> WaitDecision:
        """
        Compute the delay for one replay attempt.

        Raises:
            CalculationError: If the context is malformed
        """
        ...


def round_half_up(value: float) -> int:
    """Round to nearest integer, halves away from zero (not banker's rounding)."""
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


class TimeCompressionCalculator(WaitTimeCalculator):
    """
    Replays the archive window compressed in time.

    An event recorded t seconds after the window start waits
    round(factor * t) seconds, so with the default factor of 0.01 an hour of
    archived traffic is re-published over 36 seconds, keeping the relative
    spacing of the original events.

    Args:
        factor: Time compression factor (>= 0)
        max_delay_seconds: Upper bound for any single delay (None = unbounded)
        window_start: Default window start (RFC3339) when the context has none
    """

    def __init__(
        self,
        factor: float = 0.01,
        max_delay_seconds: Optional[int] = None,
        window_start: Optional[str] = None,
    ) -> None:
        if not is_finite_number(factor) or factor < 0:
            raise ValueError(f"factor must be a finite number >= 0, got {factor!r}")
        if max_delay_seconds is not None and max_delay_seconds < 0:
            raise ValueError(f"max_delay_seconds must be >= 0, got {max_delay_seconds}")
        self.factor = factor
        self.max_delay_seconds = max_delay_seconds
        self.window_start = window_start

    def compute(self, context: ReplayContext) -> WaitDecision:
        try:
            event_time = context.event.timestamp()
        except ValueError as e:
            raise CalculationError(f"invalid event time {context.event.time!r}: {e}") from e

        start = context.window_start or self.window_start
        if start is None:
            raise CalculationError("replay window start is unknown")
        try:
            start_time = parse_timestamp(start)
        except ValueError as e:
            raise CalculationError(f"invalid window start {start!r}: {e}") from e

        scaled = self.factor * (event_time - start_time).total_seconds()
        if not math.isfinite(scaled):
            raise CalculationError(f"non-finite delay for event at {context.event.time}")

        delay = max(0, round_half_up(scaled))
        if self.max_delay_seconds is not None:
            delay = min(delay, self.max_delay_seconds)
        return WaitDecision(delay_seconds=delay)
