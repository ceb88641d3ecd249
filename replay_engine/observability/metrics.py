"""
Prometheus metrics for replay executions.

Exposes operational metrics via HTTP /metrics endpoint for Prometheus scraping.
Until init_metrics() is called the tracking helpers are no-ops, so library
users and tests do not touch the global registry.

Environment Variables:
    EBREPLAY_METRICS_ENABLED: Enable metrics server (true/false) - default: false
    EBREPLAY_METRICS_PORT: HTTP port for /metrics endpoint - default: 9108

Usage:
    from replay_engine.observability.metrics import start_metrics_server, track_transition

    start_metrics_server(enabled=True, port=9108)
    track_transition("WaitCalculated")
"""

import logging
import threading
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

TRANSITIONS_TOTAL: Counter = None  # type: ignore
EXECUTIONS_TOTAL: Counter = None  # type: ignore
ACTIVE_EXECUTIONS: Gauge = None  # type: ignore
WAIT_SECONDS: Histogram = None  # type: ignore
PUBLISH_DURATION: Histogram = None  # type: ignore
SINK_FAILURES: Counter = None  # type: ignore

_metrics_initialized = False
_metrics_lock = threading.Lock()


def init_metrics() -> None:
    """
    Initialize Prometheus metrics (call once at startup).

    Thread-safe via module-level lock.
    """
    global TRANSITIONS_TOTAL, EXECUTIONS_TOTAL, ACTIVE_EXECUTIONS
    global WAIT_SECONDS, PUBLISH_DURATION, SINK_FAILURES
    global _metrics_initialized

    with _metrics_lock:
        if _metrics_initialized:
            return

        TRANSITIONS_TOTAL = Counter(
            "ebreplay_transitions_total",
            "Total number of execution state transitions",
            labelnames=["event_type"],
        )

        EXECUTIONS_TOTAL = Counter(
            "ebreplay_executions_total",
            "Total number of executions that reached a terminal state",
            labelnames=["outcome"],
        )

        ACTIVE_EXECUTIONS = Gauge(
            "ebreplay_active_executions",
            "Executions dispatched and not yet terminal",
        )

        WAIT_SECONDS = Histogram(
            "ebreplay_wait_seconds",
            "Computed wait before re-publishing, in seconds",
            buckets=(0, 1, 5, 10, 30, 60, 300, 900, 3600, 14400),
        )

        PUBLISH_DURATION = Histogram(
            "ebreplay_publish_duration_seconds",
            "Duration of PutEvents calls in seconds",
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
        )

        SINK_FAILURES = Counter(
            "ebreplay_sink_failures_total",
            "Publish records that could not be delivered",
            labelnames=["destination"],
        )

        _metrics_initialized = True
        logger.info("Prometheus metrics initialized")


def start_metrics_server(enabled: bool, port: int) -> None:
    """
    Start Prometheus metrics HTTP server in background thread.

    Args:
        enabled: Whether to start metrics server
        port: HTTP port for /metrics endpoint
    """
    if not enabled:
        logger.info("Metrics server disabled")
        return

    init_metrics()

    try:
        # start_http_server is non-blocking (starts daemon thread)
        start_http_server(port, addr="0.0.0.0")
        logger.info(f"Metrics server started on http://0.0.0.0:{port}/metrics")
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")


@contextmanager
def track_publish_duration() -> Generator[None, None, None]:
    if PUBLISH_DURATION is None:
        yield
        return

    with PUBLISH_DURATION.time():
        yield


def track_transition(event_type: str) -> None:
    if TRANSITIONS_TOTAL is not None:
        TRANSITIONS_TOTAL.labels(event_type=event_type).inc()


def track_dispatched() -> None:
    if ACTIVE_EXECUTIONS is not None:
        ACTIVE_EXECUTIONS.inc()


def track_terminal(outcome: str) -> None:
    if EXECUTIONS_TOTAL is not None:
        EXECUTIONS_TOTAL.labels(outcome=outcome).inc()
    if ACTIVE_EXECUTIONS is not None:
        ACTIVE_EXECUTIONS.dec()


def observe_wait(delay_seconds: int) -> None:
    if WAIT_SECONDS is not None:
        WAIT_SECONDS.observe(delay_seconds)


def track_sink_failure(destination: str) -> None:
    if SINK_FAILURES is not None:
        SINK_FAILURES.labels(destination=destination).inc()
