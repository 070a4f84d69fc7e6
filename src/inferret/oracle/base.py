"""
inferret — oracle contract and shared utilities

File: src/inferret/oracle/base.py

Purpose
- Request model, client protocol and error taxonomy for the assertion oracle.

What should be included in this file
- Request fields: model, messages, sampling parameters, the code/assertion payload.
- Error taxonomy and retryability classification.
- Strict decoding of the boolean verdict envelope.
- Bounded exponential backoff shared by concrete adapters.

Functional requirements
- ``ask`` returns a strict ``bool`` or raises ``OracleError``.
- A response that does not decode into ``{"assertion": <bool>}`` is an error, never a verdict.

Non-functional requirements
- Must make it easy to add new oracle backends without touching the executor.
"""

from __future__ import annotations

import asyncio
import json
import random as random_module
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Final, Literal, Protocol, TypeAlias, TypeVar, runtime_checkable

SleepFn: TypeAlias = Callable[[float], Awaitable[None]]
RandomFn: TypeAlias = Callable[[], float]
MessageRole: TypeAlias = Literal["system", "user", "assistant"]

VERDICT_KEY: Final[str] = "assertion"

_ROLES: Final[frozenset[str]] = frozenset({"system", "user", "assistant"})


def _validate_non_empty_str(value: str, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{field_name} cannot be empty")
    return normalized


@dataclass(frozen=True, slots=True)
class OracleMessage:
    """One chat message sent to the oracle."""

    role: MessageRole
    content: str

    def __post_init__(self) -> None:
        if self.role not in _ROLES:
            raise ValueError(f"OracleMessage.role must be one of {sorted(_ROLES)}")
        if not isinstance(self.content, str):
            raise TypeError("OracleMessage.content must be a string")

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class OracleRequest:
    """Oracle-agnostic request for one sampling trial."""

    model: str
    code: str
    assertion: str
    messages: tuple[OracleMessage, ...]
    max_tokens: int = 0
    temperature: float | None = None
    tag_name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "model", _validate_non_empty_str(self.model, "OracleRequest.model")
        )
        object.__setattr__(
            self,
            "assertion",
            _validate_non_empty_str(self.assertion, "OracleRequest.assertion"),
        )
        if not isinstance(self.code, str):
            raise TypeError("OracleRequest.code must be a string")
        object.__setattr__(self, "messages", tuple(self.messages))
        if not self.messages:
            raise ValueError("OracleRequest.messages cannot be empty")
        if self.max_tokens < 0:
            raise ValueError("OracleRequest.max_tokens must be >= 0")
        if self.temperature is not None and self.temperature < 0:
            raise ValueError("OracleRequest.temperature must be >= 0")


@runtime_checkable
class OracleClient(Protocol):
    """Protocol implemented by concrete oracle adapters."""

    async def ask(self, request: OracleRequest) -> bool:
        """Return the boolean verdict for one sampling trial."""


class OracleError(RuntimeError):
    """Normalized oracle failure.

    Subclasses pin ``code`` and the default retryability. The message renders
    every field as ``key=value``.
    """

    code: str = "oracle"
    retryable: bool = False

    def __init__(
        self,
        detail: object = "",
        *,
        provider: str = "oracle",
        code: str | None = None,
        retryable: bool | None = None,
        http_status: int | None = None,
    ) -> None:
        self.provider = _validate_non_empty_str(provider, "provider")
        self.code = _validate_non_empty_str(code if code is not None else type(self).code, "code")
        self.detail = _normalize_detail(detail)
        self.retryable = type(self).retryable if retryable is None else bool(retryable)
        self.http_status = http_status

        fields = [("provider", self.provider), ("code", self.code)]
        if http_status is not None:
            fields.append(("http_status", str(http_status)))
        fields.append(("detail", self.detail))
        super().__init__(" ".join(f"{key}={value}" for key, value in fields))


class OracleUnavailableError(OracleError):
    """The oracle SDK is missing or the client cannot be constructed."""

    code = "unavailable"


class OracleAuthenticationError(OracleError):
    code = "auth"


class OracleInvalidRequestError(OracleError):
    """Request rejected by the oracle API."""

    code = "invalid_request"


class OracleRateLimitError(OracleError):
    code = "rate_limit"
    retryable = True


class OracleTimeoutError(OracleError):
    code = "timeout"
    retryable = True


class OracleServiceError(OracleError):
    """Transport or server-side failure; retryable unless the caller says otherwise."""

    code = "service"
    retryable = True


class OracleResponseError(OracleError):
    """Response body did not decode into the boolean verdict envelope."""

    code = "response_invalid"


def decode_verdict(content: object, *, provider: str = "oracle") -> bool:
    """Decode ``{"assertion": <bool>}`` from a response body.

    Markdown code fences around the JSON object are tolerated; anything that is
    not a JSON object with a boolean ``assertion`` member is rejected.
    """

    if content is None:
        raise OracleResponseError("response has no content", provider=provider)
    if isinstance(content, Mapping):
        payload: object = content
    elif isinstance(content, str):
        text = _strip_code_fence(content)
        if not text:
            raise OracleResponseError("response content is empty", provider=provider)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise OracleResponseError(
                f"response is not valid JSON: {exc.msg}", provider=provider
            ) from exc
    else:
        raise OracleResponseError(
            f"unsupported response content type {type(content).__name__}", provider=provider
        )

    if not isinstance(payload, Mapping):
        raise OracleResponseError("response JSON must be an object", provider=provider)
    if VERDICT_KEY not in payload:
        raise OracleResponseError(f"response JSON missing {VERDICT_KEY!r}", provider=provider)
    verdict = payload[VERDICT_KEY]
    if not isinstance(verdict, bool):
        raise OracleResponseError(
            f"{VERDICT_KEY!r} must be a boolean, got {type(verdict).__name__}",
            provider=provider,
        )
    return verdict


@dataclass(frozen=True, slots=True)
class BackoffConfig:
    """Bounded exponential backoff policy."""

    max_retries: int = 2
    initial_delay_seconds: float = 0.5
    multiplier: float = 2.0
    max_delay_seconds: float = 8.0
    jitter_ratio: float = 0.1

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")
        if self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if self.initial_delay_seconds > self.max_delay_seconds:
            raise ValueError("initial_delay_seconds must be <= max_delay_seconds")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")


def compute_backoff_delay(
    *,
    retry_number: int,
    config: BackoffConfig,
    random_fn: RandomFn = random_module.random,
) -> float:
    """Return bounded exponential backoff delay for retry attempt N (1-based)."""

    if retry_number <= 0:
        raise ValueError("retry_number must be > 0")

    base_delay = config.initial_delay_seconds * (config.multiplier ** (retry_number - 1))
    bounded_delay = min(base_delay, config.max_delay_seconds)

    if config.jitter_ratio == 0.0:
        return bounded_delay

    random_value = random_fn()
    if not (0.0 <= random_value <= 1.0):
        raise ValueError("random_fn must return values in [0.0, 1.0]")

    max_jitter = bounded_delay * config.jitter_ratio
    jitter = ((random_value * 2.0) - 1.0) * max_jitter
    return max(0.0, min(config.max_delay_seconds, bounded_delay + jitter))


_ResultT = TypeVar("_ResultT")
RetryCallback: TypeAlias = Callable[[int, OracleError, float], None]


async def run_with_retries(
    operation: Callable[[], Awaitable[_ResultT]],
    *,
    map_exception: Callable[[Exception], OracleError],
    backoff: BackoffConfig,
    sleep: SleepFn = asyncio.sleep,
    random_fn: RandomFn = random_module.random,
    on_retry: RetryCallback | None = None,
) -> _ResultT:
    """Run an async operation with bounded retries based on OracleError retryability."""

    retry_count = 0
    while True:
        try:
            return await operation()
        except Exception as exc:  # noqa: BLE001
            mapped = exc if isinstance(exc, OracleError) else map_exception(exc)
            if not isinstance(mapped, OracleError):
                raise TypeError("map_exception must return OracleError") from exc

            if not mapped.retryable or retry_count >= backoff.max_retries:
                if mapped is exc:
                    raise
                raise mapped from exc

            retry_count += 1
            delay_seconds = compute_backoff_delay(
                retry_number=retry_count,
                config=backoff,
                random_fn=random_fn,
            )
            if on_retry is not None:
                on_retry(retry_count, mapped, delay_seconds)
            await sleep(delay_seconds)


def messages_payload(messages: Sequence[OracleMessage]) -> list[dict[str, str]]:
    return [message.to_dict() for message in messages]


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    body = stripped[3:]
    if body.endswith("```"):
        body = body[:-3]
    first_newline = body.find("\n")
    if first_newline != -1 and not body[:first_newline].strip().startswith("{"):
        # Drop the info string (```json).
        body = body[first_newline + 1 :]
    return body.strip()


def _normalize_detail(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return " ".join(text.split())


__all__ = [
    "VERDICT_KEY",
    "BackoffConfig",
    "MessageRole",
    "OracleAuthenticationError",
    "OracleClient",
    "OracleError",
    "OracleInvalidRequestError",
    "OracleMessage",
    "OracleRateLimitError",
    "OracleRequest",
    "OracleResponseError",
    "OracleServiceError",
    "OracleTimeoutError",
    "OracleUnavailableError",
    "RandomFn",
    "RetryCallback",
    "SleepFn",
    "compute_backoff_delay",
    "decode_verdict",
    "messages_payload",
    "run_with_retries",
]
