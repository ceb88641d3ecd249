"""
Structured logging configuration for the replay engine.

Provides JSON-formatted logs carrying execution_id and replay_name, so the
log lines of one replayed event (and of one replay) can be filtered out of
a shared stream.

Environment Variables:
    EBREPLAY_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR) - default: INFO
    EBREPLAY_LOG_FORMAT: Log format (json, text) - default: json

Usage:
    from replay_engine.observability.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__, execution_id="3f2a9c0d1b7e4a55-0", replay_name="Oct-19-14.03.05")
    logger.info("Publishing replayed event")
"""

import logging
import os
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

# Record attributes every handler line carries
EXECUTION_FIELDS = ("execution_id", "replay_name")
UNSET = "N/A"


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure root logger with structured logging.

    Arguments override the environment:
    - EBREPLAY_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    - EBREPLAY_LOG_FORMAT: json, text (default: json)
    """
    log_level = (level or os.getenv("EBREPLAY_LOG_LEVEL", "INFO")).upper()
    log_format = (fmt or os.getenv("EBREPLAY_LOG_FORMAT", "json")).lower()

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    numeric_level = level_map.get(log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # stderr keeps stdout free for --json command output
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.addFilter(ExecutionFieldsFilter())

    if log_format == "json":
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s %(execution_id)s %(replay_name)s",
            rename_fields={
                "asctime": "timestamp",
                "name": "logger",
                "levelname": "level",
            },
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s "
            "[execution_id=%(execution_id)s replay_name=%(replay_name)s]",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(
    name: str,
    execution_id: Optional[str] = None,
    replay_name: Optional[str] = None,
) -> logging.LoggerAdapter:
    """
    Get a logger bound to one execution (and its replay) for correlation.

    Example:
        logger = get_logger(__name__, execution_id="3f2a9c0d1b7e4a55-0", replay_name="Oct-19-14.03.05")
        logger.info("Waiting 12s")
        # Output (JSON): {"timestamp": "...", "level": "INFO", "message": "Waiting 12s",
        #                 "execution_id": "3f2a9c0d1b7e4a55-0", "replay_name": "Oct-19-14.03.05"}
    """
    logger = logging.getLogger(name)
    return logging.LoggerAdapter(
        logger,
        {"execution_id": execution_id or UNSET, "replay_name": replay_name or UNSET},
    )


class ExecutionFieldsFilter(logging.Filter):
    """
    Logging filter that adds execution_id and replay_name to all log records.

    Ensures every line has both fields, even if not set via LoggerAdapter or extra.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for field in EXECUTION_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, UNSET)
        return True
