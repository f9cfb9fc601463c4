"""Observability module for Pensieve.

Provides structured logging with bound validation context, and per-phase
timing sinks.
"""

from pensieve.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
    validation_context,
)
from pensieve.observability.timing import (
    LoggingTimingSink,
    NullTimingSink,
    PhaseTiming,
    RecordingTimingSink,
    TimingSink,
)

__all__ = [
    "LoggingTimingSink",
    "NullTimingSink",
    "PhaseTiming",
    "RecordingTimingSink",
    "TimingSink",
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
    "validation_context",
]
