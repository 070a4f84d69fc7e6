"""Logging setup with text or JSON-lines output, correlation fields, and redaction."""

from __future__ import annotations

import contextvars
import json
import logging
import re
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Final, Literal, TextIO

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogFormat = Literal["text", "json"]

REDACTED_VALUE: Final[str] = "***REDACTED***"
DEFAULT_LOGGER_NAME: Final[str] = "inferret"

_TEXT_FORMAT: Final[str] = "%(levelname)s %(name)s: %(message)s"

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "credential",
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_OPENAI_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-[A-Za-z0-9_-]{12,}\b")

# Attributes every LogRecord carries; anything else on a record came from ``extra=``.
_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName", "correlation"}

_CorrelationState = tuple[tuple[str, str], ...]
_CORRELATION_CONTEXT: contextvars.ContextVar[_CorrelationState] = contextvars.ContextVar(
    "inferret_correlation", default=()
)


def setup_logging(
    *,
    verbose: bool = False,
    log_format: LogFormat = "text",
    level: int | str | None = None,
    stream: TextIO | None = None,
    logger_name: str = DEFAULT_LOGGER_NAME,
) -> logging.Logger:
    """Configure the package logger with a single stream handler.

    Calling it again replaces the previously installed handler, so repeated CLI
    invocations inside one process do not duplicate output.
    """

    if level is None:
        level = "DEBUG" if verbose else "WARNING"
    resolved_level = _parse_log_level(level)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved_level)
    if log_format == "json":
        handler.setFormatter(_JsonLineFormatter())
    elif log_format == "text":
        handler.setFormatter(_TextFormatter(_TEXT_FORMAT))
    else:
        raise ValueError(f"unsupported log format: {log_format!r}")

    logger = logging.getLogger(logger_name)
    logger.setLevel(resolved_level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(handler)
    return logger


def get_correlation_context() -> dict[str, str]:
    """Return the current correlation context as a plain dictionary."""
    return dict(_CORRELATION_CONTEXT.get())


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Temporarily bind correlation fields for log records in scope."""
    state = get_correlation_context()
    for key, value in fields.items():
        if value is None:
            state.pop(key, None)
            continue
        stripped = value.strip()
        if stripped:
            state[key] = stripped
    token = _CORRELATION_CONTEXT.set(tuple(state.items()))
    try:
        yield
    finally:
        _CORRELATION_CONTEXT.reset(token)


def redact_text(text: str) -> str:
    """Mask API keys, bearer tokens, and secret assignments in free text."""
    # Must run before the assignment pattern, which stops at the word "Bearer".
    redacted = _BEARER_TOKEN_PATTERN.sub(f"Bearer {REDACTED_VALUE}", text)
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{REDACTED_VALUE}", redacted
    )
    return _OPENAI_KEY_PATTERN.sub(REDACTED_VALUE, redacted)


def redact_value(value: JSONValue, *, key_context: str | None = None) -> JSONValue:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return REDACTED_VALUE
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, list):
        return [redact_value(item) for item in value]
    if isinstance(value, dict):
        return {key: redact_value(item, key_context=key) for key, item in value.items()}
    return value


class _TextFormatter(logging.Formatter):
    """Human-readable formatter with trailing ``[key=value]`` correlation fields."""

    def format(self, record: logging.LogRecord) -> str:
        rendered = redact_text(super().format(record))
        context = _record_context(record)
        if context:
            fields = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
            rendered = f"{rendered} [{fields}]"
        return rendered


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits canonical JSON objects per log line."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_text(record.getMessage()),
        }

        for key, value in sorted(_record_context(record).items()):
            event[key] = value

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = redact_value(json.loads(json.dumps(extras, default=str)))

        if record.exc_info is not None:
            event["exception"] = redact_text(self.formatException(record.exc_info))

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _record_context(record: logging.LogRecord) -> dict[str, str]:
    # Records formatted on the emitting task see its context; ``correlation``
    # extras win over the ambient scope.
    merged = get_correlation_context()
    user_context = getattr(record, "correlation", None)
    if isinstance(user_context, Mapping):
        for key, value in user_context.items():
            if isinstance(key, str) and isinstance(value, str) and value.strip():
                merged[key] = value.strip()
    return merged


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_LOG_RECORD_FIELDS and not key.startswith("_")
    }


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS)


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {value!r}")
    return resolved


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


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
