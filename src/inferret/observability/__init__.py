"""Logging and correlation helpers."""

from inferret.observability.logging import (
    DEFAULT_LOGGER_NAME,
    REDACTED_VALUE,
    LogFormat,
    correlation_scope,
    get_correlation_context,
    redact_text,
    redact_value,
    setup_logging,
)

__all__ = [
    "DEFAULT_LOGGER_NAME",
    "REDACTED_VALUE",
    "LogFormat",
    "correlation_scope",
    "get_correlation_context",
    "redact_text",
    "redact_value",
    "setup_logging",
]
