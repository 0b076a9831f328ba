"""Observability helpers (structured logging)."""

from data_steward.observability.logging import (
    LoggingConfig,
    LoggingHandle,
    configure_structlog,
    default_log_redactor,
    get_logger,
    preview_text,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "LoggingHandle",
    "configure_structlog",
    "default_log_redactor",
    "get_logger",
    "preview_text",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
