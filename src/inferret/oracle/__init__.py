"""Oracle contract, prompt construction and the OpenAI adapter."""

from inferret.oracle.base import (
    BackoffConfig,
    OracleAuthenticationError,
    OracleClient,
    OracleError,
    OracleInvalidRequestError,
    OracleMessage,
    OracleRateLimitError,
    OracleRequest,
    OracleResponseError,
    OracleServiceError,
    OracleTimeoutError,
    OracleUnavailableError,
    compute_backoff_delay,
    decode_verdict,
    run_with_retries,
)
from inferret.oracle.openai_adapter import OpenAIOracle
from inferret.oracle.prompts import build_messages

__all__ = [
    "BackoffConfig",
    "OpenAIOracle",
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
    "build_messages",
    "compute_backoff_delay",
    "decode_verdict",
    "run_with_retries",
]
