"""
Logging configuration for Kestrel.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development. Supports correlation IDs so every
attempt of one dispatched call can be traced together.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict


# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation ID to log events if present in context.

    Args:
        logger: Logger instance
        method_name: Name of the logging method
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with correlation_id if available
    """
    correlation_id = correlation_id_var.get()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Optional correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear correlation ID from the current context."""
    correlation_id_var.set(None)


def get_correlation_id() -> Optional[str]:
    """
    Get the current correlation ID from context.

    Returns:
        Current correlation ID or None if not set
    """
    return correlation_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for Kestrel.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs only to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(stderr_handler)

    processors: list = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(logging_config: Any, level: Optional[str] = None) -> None:
    """
    Apply a LoggingConfig section.

    Args:
        logging_config: LoggingConfig from a loaded ClientConfig
        level: Optional level overriding the configured one
    """
    effective_level = (level or logging_config.level).upper()
    log_file = Path(logging_config.file) if logging_config.file else None
    setup_logging(
        level=effective_level,
        log_file=log_file,
        json_format=logging_config.json_format,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    return structlog.get_logger(f"kestrel.{name}")


# Convenience functions for common logging patterns

def log_dispatch_attempt(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    attempt: int,
    **kwargs: Any,
) -> None:
    """
    Log a single transmission of a dispatched call.

    Args:
        logger: Logger instance
        operation: Service operation name (e.g. "GetItem")
        attempt: Zero-based attempt number within the logical call
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "dispatch_attempt",
        "operation": operation,
        "attempt": attempt,
    }
    log_data.update(kwargs)

    logger.debug("dispatch_attempt", **log_data)


def log_retry_scheduled(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    attempt: int,
    delay_seconds: float,
    error_kind: str,
    **kwargs: Any,
) -> None:
    """
    Log a backoff sleep scheduled after a retryable failure.

    Args:
        logger: Logger instance
        operation: Service operation name
        attempt: Zero-based attempt number that failed
        delay_seconds: Backoff delay before the next attempt
        error_kind: ErrorKind value of the retryable failure
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "retry_scheduled",
        "operation": operation,
        "attempt": attempt,
        "delay_seconds": delay_seconds,
        "error_kind": error_kind,
    }
    log_data.update(kwargs)

    logger.warning("retry_scheduled", **log_data)


def log_classified_error(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    error_kind: str,
    retryable: bool,
    status_code: Optional[int] = None,
    message: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log the classification of a failed call.

    Fatal classifications are logged at error level, retryable ones at info.

    Args:
        logger: Logger instance
        operation: Service operation name
        error_kind: ErrorKind value
        retryable: Whether the dispatcher will retry
        status_code: HTTP status of the reply, if any
        message: Service-reported message, if any
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "classified_error",
        "operation": operation,
        "error_kind": error_kind,
        "retryable": retryable,
    }

    if status_code is not None:
        log_data["status_code"] = status_code
    if message:
        log_data["message"] = message

    log_data.update(kwargs)

    if retryable:
        logger.info("classified_error", **log_data)
    else:
        logger.error("classified_error", **log_data)


def log_connection_event(
    logger: structlog.stdlib.BoundLogger,
    action: str,
    endpoint: str,
    success: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log a connection lifecycle transition.

    Args:
        logger: Logger instance
        action: "connect", "close" or "reset"
        endpoint: Base URL of the service endpoint
        success: Whether the transition succeeded
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "connection",
        "action": action,
        "endpoint": endpoint,
        "success": success,
    }
    log_data.update(kwargs)

    if success:
        logger.info("connection_event", **log_data)
    else:
        logger.warning("connection_event", **log_data)
