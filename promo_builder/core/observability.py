"""
Observability module for the promotion rule builder.

Provides:
- Structured logging with JSON format and correlation IDs
- Correlation ID (request_id) generation and propagation to the rules API
- Prometheus metrics collection (compiler, API client)

Usage:
    from promo_builder.core.observability import (
        configure_structured_logging,
        get_request_id,
        set_correlation_id,
        metrics,
    )
"""

import json
import logging
import uuid
from contextvars import ContextVar, Token
from datetime import UTC, datetime

from prometheus_client import CollectorRegistry, Counter, Histogram

# ============================================================================
# Context Variables
# ============================================================================

# Correlation ID - links compile/submit logs with the outgoing API request
_request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def generate_request_id() -> str:
    """Generate a unique request ID for correlation."""
    return str(uuid.uuid4())


def get_request_id() -> str:
    """Get the current request ID from context."""
    return _request_id_ctx.get()


def set_correlation_id(request_id: str) -> Token[str]:
    """
    Set the correlation ID for the current context.

    Returns a token for `reset_correlation_id`, which restores the previous value.
    """
    return _request_id_ctx.set(request_id)


def reset_correlation_id(token: Token[str]) -> None:
    """Restore the correlation ID that was current before `set_correlation_id`."""
    _request_id_ctx.reset(token)


# ============================================================================
# Structured Logging Configuration
# ============================================================================

# LogRecord attributes that are not user-supplied `extra` fields
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs as JSON with standard fields:
    - timestamp: ISO 8601 format
    - level: Log level
    - logger: Logger name
    - message: Log message
    - request_id: Correlation ID (if available)
    - exception: type and message (if present)
    - extra: Any additional context from logging.extra
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        if request_id:
            log_entry["request_id"] = request_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        log_entry["file"] = record.pathname
        log_entry["line"] = record.lineno
        log_entry["function"] = record.funcName

        # These come from logger.info("msg", extra={"key": "value"})
        extra_keys = {
            k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_KEYS
        }
        if extra_keys:
            log_entry["extra"] = extra_keys

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: str = "INFO", structured: bool = True) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Emit JSON lines when True, plain text otherwise
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    root_logger.addHandler(handler)


# ============================================================================
# Prometheus Metrics
# ============================================================================

# Custom registry so embedding applications keep their own default registry clean
_registry = CollectorRegistry()


class Metrics:
    """
    Centralized metrics collection.

    Metrics groups:
    - Compiler: compilation count, duration, graph size
    - API client: outgoing request count and latency
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        self.registry = registry

        # -------------------------------------------------------------------
        # Compiler Metrics
        # -------------------------------------------------------------------

        self.compiler_compilations_total = Counter(
            "promo_compiler_compilations_total",
            "Total promotion rule compilations",
            ["status"],
            registry=self.registry,
        )

        self.compiler_duration_seconds = Histogram(
            "promo_compiler_duration_seconds",
            "Promotion rule compilation duration in seconds",
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0),
            registry=self.registry,
        )

        self.compiler_nodes_count = Histogram(
            "promo_compiler_nodes_count",
            "Number of nodes in compiled rule graphs",
            buckets=(1, 2, 5, 10, 25, 50, 100, 250, 500),
            registry=self.registry,
        )

        # -------------------------------------------------------------------
        # API Client Metrics
        # -------------------------------------------------------------------

        self.api_requests_total = Counter(
            "promo_api_requests_total",
            "Total requests sent to the promotion rules API",
            ["method", "endpoint", "outcome"],
            registry=self.registry,
        )

        self.api_request_duration_seconds = Histogram(
            "promo_api_request_duration_seconds",
            "Promotion rules API request latency in seconds",
            ["method", "endpoint"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry,
        )


# Global metrics instance
metrics = Metrics(_registry)
