"""Logging infrastructure.

Structured logging with:
- JSONL output with OpenTelemetry trace correlation
- Automatic context injection (worker_id, outbox_id, channel, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for debug messages

Basic usage:
    from notify_service.infra.logging import get_logger, set_log_context

    logger = get_logger(__name__)
    set_log_context(worker_id="host:42")
    logger.info("Worker started")
"""

from notify_service.infra.logging.config import configure_logging, setup_logging, shutdown
from notify_service.infra.logging.context import (
    ContextBoundLogger,
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    get_logger,
    remove_from_log_context,
    set_log_context,
)
from notify_service.infra.logging.formatters import JSONFormatter
from notify_service.infra.logging.lazy import LazyLoggerAdapter, LazyString, get_lazy_logger, lazy

__all__ = [
    "ContextBoundLogger",
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "LazyString",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "get_logger",
    "lazy",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
