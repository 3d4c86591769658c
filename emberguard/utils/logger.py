"""Structured logging utilities for EmberGuard.

This module provides structured logging using structlog.
All logs emitted during a pipeline call include its scan_id for tracing.

Log lines carry metadata only (pattern ids, labels, counts) — never message
text, matched substrings, or sender identifiers.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from emberguard.constants import SCAN_LATENCY_BUDGET_MS

# Context variable for per-call scan tracking
scan_id_var: ContextVar[Optional[str]] = ContextVar("scan_id", default=None)


def add_scan_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add scan_id to log context if available."""
    scan_id = scan_id_var.get()
    if scan_id:
        event_dict["scan_id"] = scan_id
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_scan_id,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Pretty console output for development
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "emberguard") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class PerformanceLogger:
    """Context manager for tracking operation performance."""

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        budget_ms: float = SCAN_LATENCY_BUDGET_MS,
    ):
        """Initialize performance logger.

        Args:
            operation: Name of the operation being timed
            logger: Logger instance to use (creates new if None)
            budget_ms: Durations above this are logged at WARNING
        """
        self.operation = operation
        self.logger = logger or get_logger()
        self.budget_ms = budget_ms
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "PerformanceLogger":
        """Start timing."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Stop timing and log performance."""
        self.end_time = time.perf_counter()
        duration_ms = (self.end_time - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
            )
        else:
            log_method = self.logger.warning if duration_ms > self.budget_ms else self.logger.debug
            log_method(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
            )


def set_scan_id(scan_id: str) -> None:
    """Set scan ID in context for all subsequent logs.

    Args:
        scan_id: Unique identifier for the pipeline call
    """
    scan_id_var.set(scan_id)


def clear_scan_id() -> None:
    """Clear scan ID from context."""
    scan_id_var.set(None)


# Initialize logging with sensible defaults.
# Callers reconfigure via configure_logging() using the loaded Config.
configure_logging()
