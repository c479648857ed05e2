"""Structured logging configuration using structlog.

Kusanagi code logs through structlog. Third-party libraries (uvicorn,
websockets, httpx, kubernetes_asyncio) log through the stdlib; their records
are routed to the same stream and their chatty loggers are capped at WARNING.
"""

from __future__ import annotations

import logging
import sys

import structlog

_NOISY_LIBRARIES = ("httpx", "httpcore", "websockets", "kubernetes_asyncio", "uvicorn.error")


def setup_logging(level: str = "info") -> None:
    """Configure structlog for JSON output to stderr."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(stream=sys.stderr, level=log_level, format="%(message)s")
    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
