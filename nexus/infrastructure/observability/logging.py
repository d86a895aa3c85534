"""
Structured logging setup for the Nexus triage service.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_trace_context,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def bind_request_id(request_id: str | None) -> None:
    """Attach a request id to every log entry emitted in the current context."""
    _request_id.set(request_id)


def _add_trace_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add trace context to log entries if available."""
    request_id = _request_id.get()
    if request_id and "request_id" not in event_dict:
        event_dict["request_id"] = request_id
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_model_call(provider: str, operation: str, tokens: int, cost: float, ok: bool = True):
    """Log language-model calls with consistent fields."""
    logger = get_logger("llm")

    log_data = {
        "provider": provider,
        "operation": operation,
        "tokens": tokens,
        "cost": round(cost, 6),
        "call_type": "model_call",
    }

    if ok:
        logger.info("Model call completed", **log_data)
    else:
        logger.warning("Model call failed", **log_data)


def log_gateway_call(instance: str, endpoint: str, ok: bool, duration_ms: float, error: str = None):
    """Log messaging gateway calls with consistent fields."""
    logger = get_logger("gateway")

    log_data = {
        "instance": instance,
        "endpoint": endpoint,
        "ok": ok,
        "duration_ms": duration_ms,
        "call_type": "gateway_call",
    }

    if error:
        log_data["error"] = error

    if ok:
        logger.info("Gateway call completed", **log_data)
    else:
        logger.warning("Gateway call failed", **log_data)
