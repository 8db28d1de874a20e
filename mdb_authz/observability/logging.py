"""
Contextual logging utilities for MDB_AUTHZ.

Adds a correlation ID and an enforcer context (tenant/domain, enforcer
name, ...) to log records emitted while handling an authorization request.
"""

import contextvars
import logging
import uuid
from datetime import datetime
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

_enforcer_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "enforcer_context", default=None
)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set a correlation ID in the current context.

    Args:
        correlation_id: Optional correlation ID (generates new one if None)

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def set_enforcer_context(domain: str | None = None, **kwargs: Any) -> None:
    """
    Set enforcer context for logging.

    Args:
        domain: Tenant/domain the current requests are scoped to
        **kwargs: Additional context (enforcer name, subject, ...)
    """
    _enforcer_context.set({"domain": domain, **kwargs})


def clear_enforcer_context() -> None:
    _enforcer_context.set(None)


def get_logging_context() -> dict[str, Any]:
    """
    Get current logging context (correlation ID and enforcer context).

    Returns:
        Dictionary with context information
    """
    context: dict[str, Any] = {"timestamp": datetime.now().isoformat()}

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    enforcer_context = _enforcer_context.get()
    if enforcer_context:
        context.update(enforcer_context)

    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges the current context into each record."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = get_logging_context()
        extra = kwargs.get("extra")
        if extra:
            context.update(extra)
        kwargs["extra"] = context
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger.

    Args:
        name: Logger name (typically __name__)
    """
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger | logging.LoggerAdapter,
    operation: str,
    level: int = logging.INFO,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log a policy operation (load, save, mutation) with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g. "load_policy")
        level: Log level
        success: Whether operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional context (rule counts, adapter, ...)
    """
    log_context = get_logging_context()
    log_context.update({"operation": operation, "success": success})
    if duration_ms is not None:
        log_context["duration_ms"] = round(duration_ms, 2)
    log_context.update(context)

    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=log_context)
