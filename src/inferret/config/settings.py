"""
inferret — runtime settings.

File: src/inferret/config/settings.py

Purpose
- Resolve runtime settings (oracle endpoint, parallelism, logging, marker mode).

What should be included in this file
- Precedence logic: CLI > env (INFER_) > defaults.
- Deterministic environment variable mapping and coercion.
- Redacted dump suitable for verbose logging.

Functional requirements
- Reject invalid values with ``ConfigLoadError`` naming the offending source.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Final, Literal

from inferret.config.loader import ConfigLoadError
from inferret.constants import (
    DEFAULT_API_KEY_ENV,
    DEFAULT_INFERFILE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_OPENAI_API_URL,
    DEFAULT_PARALLEL_THREADS,
    DEFAULT_TIMEOUT_SECONDS,
    ENV_PREFIX,
)

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_LOG_FORMATS: Final[frozenset[str]] = frozenset({"text", "json"})
_REDACTED_VALUE: Final[str] = "***REDACTED***"

_ValueType = Literal["str", "int", "float", "bool"]


@dataclass(frozen=True, slots=True)
class RuntimeSettings:
    """Effective settings for one CLI invocation."""

    inferfile: str = DEFAULT_INFERFILE
    openai_api_key: str | None = None
    openai_api_key_env: str = DEFAULT_API_KEY_ENV
    openai_api_url: str = DEFAULT_OPENAI_API_URL
    parallel_threads: int = DEFAULT_PARALLEL_THREADS
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    loose_markers: bool = False
    verbose: bool = False
    log_format: str = "text"

    def __post_init__(self) -> None:
        if not self.inferfile.strip():
            raise ConfigLoadError("inferfile cannot be empty")
        if not self.openai_api_url.strip():
            raise ConfigLoadError("openai_api_url cannot be empty")
        if self.parallel_threads < 1:
            raise ConfigLoadError("parallel_threads must be >= 1")
        if self.max_retries < 0:
            raise ConfigLoadError("max_retries must be >= 0")
        if self.timeout_seconds <= 0:
            raise ConfigLoadError("timeout_seconds must be > 0")
        if self.log_format not in _LOG_FORMATS:
            raise ConfigLoadError(f"log_format must be one of {sorted(_LOG_FORMATS)}")

    def resolve_api_key(self, environ: Mapping[str, str] | None = None) -> str | None:
        """Return the explicit API key, else the configured env var value."""

        if self.openai_api_key:
            return self.openai_api_key
        env_map = os.environ if environ is None else environ
        value = env_map.get(self.openai_api_key_env)
        if value is None or not value.strip():
            return None
        return value.strip()

    def redacted(self) -> dict[str, Any]:
        payload = asdict(self)
        if payload.get("openai_api_key"):
            payload["openai_api_key"] = _REDACTED_VALUE
        return payload


def load_settings(
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> RuntimeSettings:
    """Resolve settings with deterministic precedence: CLI > env > defaults.

    ``cli_overrides`` values of ``None`` mean "not given on the command line".
    """

    env_map = dict(os.environ if environ is None else environ)
    merged: dict[str, object] = {}

    for name, value_type in _bindings().items():
        env_name = _env_name(name)
        raw = env_map.get(env_name)
        if raw is None:
            continue
        merged[name] = _coerce_env(raw, value_type, env_name)

    for name, value in sorted((cli_overrides or {}).items()):
        if name not in _bindings():
            raise ConfigLoadError(f"unknown setting {name!r}")
        if value is None:
            continue
        merged[name] = value

    return replace(RuntimeSettings(), **merged)


def _bindings() -> dict[str, _ValueType]:
    bindings: dict[str, _ValueType] = {}
    for item in fields(RuntimeSettings):
        default = item.default
        if isinstance(default, bool):
            bindings[item.name] = "bool"
        elif isinstance(default, int):
            bindings[item.name] = "int"
        elif isinstance(default, float):
            bindings[item.name] = "float"
        else:
            bindings[item.name] = "str"
    return bindings


def _env_name(name: str) -> str:
    return ENV_PREFIX + name.upper()


def _coerce_env(raw: str, value_type: _ValueType, env_name: str) -> object:
    value = raw.strip()
    if value_type == "str":
        return value
    if value_type == "int":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} must be an integer") from exc
    if value_type == "float":
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} must be a number") from exc

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(f"{env_name} must be a boolean (true/false/1/0/yes/no/on/off)")


__all__ = ["RuntimeSettings", "load_settings"]
