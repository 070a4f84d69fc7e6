"""
inferret — OpenAI oracle adapter

File: src/inferret/oracle/openai_adapter.py

Purpose
- Answer boolean code assertions through the OpenAI chat completions API.

What should be included in this file
- Lazy ``openai`` SDK import and ``AsyncOpenAI`` client construction.
- JSON-object response format and strict verdict decoding.
- Error mapping onto the oracle taxonomy plus bounded retries.

Functional requirements
- Base URL and API key are configurable; nothing is hardcoded beyond the default endpoint.
- Injected clients are used as-is so tests never touch the network.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import os
import random as random_module
from collections.abc import Mapping, Sequence
from typing import Protocol, cast

from inferret.constants import DEFAULT_API_KEY_ENV, DEFAULT_OPENAI_API_URL
from inferret.oracle.base import (
    BackoffConfig,
    OracleAuthenticationError,
    OracleError,
    OracleInvalidRequestError,
    OracleRateLimitError,
    OracleRequest,
    OracleResponseError,
    OracleServiceError,
    OracleTimeoutError,
    OracleUnavailableError,
    RandomFn,
    SleepFn,
    decode_verdict,
    messages_payload,
    run_with_retries,
)

logger = logging.getLogger(__name__)


class _ChatCompletionsAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _ChatAPI(Protocol):
    completions: _ChatCompletionsAPI


class _OpenAIClient(Protocol):
    chat: _ChatAPI


class OpenAIOracle:
    """OpenAI chat-completions oracle with optional injected client."""

    provider_name = "openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_key_env: str = DEFAULT_API_KEY_ENV,
        base_url: str | None = DEFAULT_OPENAI_API_URL,
        timeout_seconds: float | None = None,
        client: _OpenAIClient | None = None,
        backoff: BackoffConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
        random_fn: RandomFn = random_module.random,
    ) -> None:
        self._api_key = api_key.strip() if api_key and api_key.strip() else None
        self._api_key_env = api_key_env
        self._base_url = base_url.strip() if base_url and base_url.strip() else None

        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._timeout_seconds = timeout_seconds

        self._client = client
        self._backoff = backoff if backoff is not None else BackoffConfig()
        self._sleep = sleep
        self._random_fn = random_fn

    async def ask(self, request: OracleRequest) -> bool:
        payload = self.build_payload(request)

        async def operation() -> bool:
            client = self._ensure_client()
            raw_response = await client.chat.completions.create(**payload)
            return self._decode_response(raw_response)

        def on_retry(attempt: int, error: OracleError, delay: float) -> None:
            logger.warning(
                "oracle call failed (%s); retry %d/%d in %.2fs",
                error.code,
                attempt,
                self._backoff.max_retries,
                delay,
            )

        return await run_with_retries(
            operation,
            map_exception=self._map_exception,
            backoff=self._backoff,
            sleep=self._sleep,
            random_fn=self._random_fn,
            on_retry=on_retry,
        )

    def build_payload(self, request: OracleRequest) -> dict[str, object]:
        payload: dict[str, object] = {
            "model": request.model,
            "messages": messages_payload(request.messages),
            "response_format": {"type": "json_object"},
        }
        if request.max_tokens > 0:
            payload["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        logger.debug(
            "chat completion request: model=%s max_tokens=%s temperature=%s",
            request.model,
            payload.get("max_tokens"),
            payload.get("temperature"),
        )
        return payload

    def _ensure_client(self) -> _OpenAIClient:
        if self._client is not None:
            return self._client
        self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _OpenAIClient:
        try:
            openai_module = importlib.import_module("openai")
        except ImportError as exc:
            raise OracleUnavailableError(
                provider=self.provider_name,
                detail="openai SDK is not installed",
            ) from exc

        async_openai = getattr(openai_module, "AsyncOpenAI", None)
        if async_openai is None:
            raise OracleUnavailableError(
                provider=self.provider_name,
                detail="openai SDK does not expose AsyncOpenAI",
            )

        init_kwargs: dict[str, object] = {"api_key": self._resolve_api_key(), "max_retries": 0}
        if self._base_url is not None:
            init_kwargs["base_url"] = self._base_url
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        return cast("_OpenAIClient", async_openai(**init_kwargs))

    def _resolve_api_key(self) -> str:
        if self._api_key is not None:
            return self._api_key
        configured = os.getenv(self._api_key_env)
        if configured is None or not configured.strip():
            raise OracleAuthenticationError(
                provider=self.provider_name,
                detail=f"missing OpenAI API key; set {self._api_key_env} or pass --openai-api-key",
                http_status=401,
            )
        return configured.strip()

    def _decode_response(self, raw_response: object) -> bool:
        choices = _field(raw_response, "choices")
        if not isinstance(choices, Sequence) or isinstance(choices, str) or not choices:
            raise OracleResponseError(
                "no choices in completion response", provider=self.provider_name
            )
        content = _field(_field(choices[0], "message"), "content")
        return decode_verdict(content, provider=self.provider_name)

    def _map_exception(self, exc: Exception) -> OracleError:
        if isinstance(exc, OracleError):
            return exc

        status_code = _status_code(exc)
        error_type = _error_type_for(exc, status_code)
        detail = " ".join(str(exc).split()) or type(exc).__name__
        if error_type is not None:
            return error_type(detail, provider=self.provider_name, http_status=status_code)
        # Unclassified SDK or transport failures are retried only on 5xx.
        return OracleServiceError(
            detail,
            provider=self.provider_name,
            retryable=status_code is not None and status_code >= 500,
            http_status=status_code,
        )


# Keyed by ``openai`` SDK exception class name; the SDK is never imported for mapping.
_ERRORS_BY_SDK_CLASS: dict[str, type[OracleError]] = {
    "AuthenticationError": OracleAuthenticationError,
    "PermissionDeniedError": OracleAuthenticationError,
    "RateLimitError": OracleRateLimitError,
    "APITimeoutError": OracleTimeoutError,
    "BadRequestError": OracleInvalidRequestError,
    "NotFoundError": OracleInvalidRequestError,
    "ConflictError": OracleInvalidRequestError,
    "UnprocessableEntityError": OracleInvalidRequestError,
    "APIConnectionError": OracleServiceError,
    "InternalServerError": OracleServiceError,
}

_ERRORS_BY_STATUS: dict[int, type[OracleError]] = {
    400: OracleInvalidRequestError,
    401: OracleAuthenticationError,
    403: OracleAuthenticationError,
    404: OracleInvalidRequestError,
    409: OracleInvalidRequestError,
    413: OracleInvalidRequestError,
    422: OracleInvalidRequestError,
    429: OracleRateLimitError,
}


def _error_type_for(exc: Exception, status_code: int | None) -> type[OracleError] | None:
    for cls in type(exc).__mro__:
        mapped = _ERRORS_BY_SDK_CLASS.get(cls.__name__)
        if mapped is not None:
            return mapped
    if status_code is not None and status_code in _ERRORS_BY_STATUS:
        return _ERRORS_BY_STATUS[status_code]
    if isinstance(exc, asyncio.TimeoutError):
        return OracleTimeoutError
    return None


def _status_code(exc: BaseException) -> int | None:
    for holder in (exc, getattr(exc, "response", None)):
        value = getattr(holder, "status_code", None)
        if isinstance(value, int):
            return value
    return None


def _field(value: object, key: str) -> object:
    # SDK responses are objects; proxies and tests may return plain dicts.
    if isinstance(value, Mapping):
        return value.get(key)
    return getattr(value, key, None)


__all__ = ["OpenAIOracle"]
