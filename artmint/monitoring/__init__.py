"""
Artmint - Monitoring Module

Structured logging helpers shared by the pipeline and its outer surfaces.
"""

from .logging import (
    LoggingContextMiddleware,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    log_duration,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "LoggingContextMiddleware",
    "log_duration",
]
