"""
Structured logging with delivery_id tracking.
"""

import structlog
import logging
import sys
from uuid import uuid4
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

# Context variable for webhook delivery tracking
delivery_id_ctx: ContextVar[str] = ContextVar("delivery_id", default="no-delivery")


def get_delivery_id() -> str:
    """Get current delivery ID from context."""
    return delivery_id_ctx.get()


def set_delivery_id(delivery_id: str | None = None) -> str:
    """Set delivery ID in context. Generates one if not provided."""
    did = delivery_id or str(uuid4())[:8]
    delivery_id_ctx.set(did)
    return did


def add_delivery_id(logger, method_name, event_dict):
    """Processor to add delivery_id to all log entries."""
    event_dict["delivery_id"] = get_delivery_id()
    return event_dict


@contextmanager
def job_context(delivery_id: str, **fields) -> Iterator[None]:
    """Restore the submitting delivery's id and bind job fields (repo, pr, branch).

    Fields are unbound when the job ends so the next job on the same worker
    starts clean.
    """
    set_delivery_id(delivery_id)
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def setup_logging(debug: bool = False):
    """Configure structured logging for the application."""
    log_level = logging.DEBUG if debug else logging.INFO

    stdout_encoding = (getattr(sys.stdout, "encoding", None) or "").lower()
    use_console_renderer = debug and ("utf" in stdout_encoding)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_delivery_id,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if use_console_renderer else structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Also configure standard logging for third-party libs
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # GitHub and Gemini calls are chatty at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("chromadb").setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
