"""
Unit tests for the oracle contract and shared utilities.

Coverage:
- Strict boolean verdict decoding.
- Request model validation and prompt construction.
- Deterministic bounded backoff and retry classification.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields

import pytest

from inferret.oracle import (
    BackoffConfig,
    OracleAuthenticationError,
    OracleError,
    OracleMessage,
    OracleRateLimitError,
    OracleRequest,
    OracleResponseError,
    OracleServiceError,
    OracleTimeoutError,
    build_messages,
    compute_backoff_delay,
    decode_verdict,
    run_with_retries,
)
from inferret.oracle.prompts import VERDICT_INSTRUCTION


@dataclass(slots=True)
class _SleepRecorder:
    calls: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ('{"assertion": true}', True),
        ('{"assertion": false}', False),
        ('  {"assertion": true, "reason": "bounds are checked"}  ', True),
        ('```json\n{"assertion": false}\n```', False),
        ('```{"assertion": true}```', True),
        ({"assertion": True}, True),
    ],
)
def test_decode_verdict_accepts_boolean_envelopes(content: object, expected: bool) -> None:
    assert decode_verdict(content) is expected


@pytest.mark.parametrize(
    ("content", "match"),
    [
        (None, "response has no content"),
        ("", "response content is empty"),
        ("yes", "response is not valid JSON"),
        ("[true]", "response JSON must be an object"),
        ('{"answer": true}', "missing 'assertion'"),
        ('{"assertion": "true"}', "'assertion' must be a boolean, got str"),
        ('{"assertion": 1}', "'assertion' must be a boolean, got int"),
        ('{"assertion": null}', "'assertion' must be a boolean, got NoneType"),
        (42, "unsupported response content type int"),
    ],
)
def test_decode_verdict_rejects_everything_else(content: object, match: str) -> None:
    with pytest.raises(OracleResponseError, match=match) as excinfo:
        decode_verdict(content, provider="openai")

    assert excinfo.value.provider == "openai"
    assert excinfo.value.code == "response_invalid"
    assert excinfo.value.retryable is False


def test_build_messages_fixed_conversation() -> None:
    messages = build_messages(tag_name="auth", code="x = 1\n", assertion="x is one")

    assert [message.role for message in messages] == ["system", "system", "user"]
    assert messages[0].content.startswith("Here is a code block tagged as [auth].")
    assert messages[0].content.endswith("\n\nx = 1\n")
    assert messages[1].content == VERDICT_INSTRUCTION
    assert '{"assertion": true}' in VERDICT_INSTRUCTION
    assert messages[2].content == "Is the following assertion about the code true? x is one"


def test_request_validation() -> None:
    messages = (OracleMessage(role="user", content="hi"),)

    with pytest.raises(ValueError, match="model cannot be empty"):
        OracleRequest(model=" ", code="", assertion="a", messages=messages)
    with pytest.raises(ValueError, match="messages cannot be empty"):
        OracleRequest(model="gpt-4o", code="", assertion="a", messages=())
    with pytest.raises(ValueError, match="role must be one of"):
        OracleMessage(role="tool", content="x")  # type: ignore[arg-type]


def test_request_carries_only_what_the_oracle_sends() -> None:
    assert [item.name for item in fields(OracleRequest)] == [
        "model",
        "code",
        "assertion",
        "messages",
        "max_tokens",
        "temperature",
        "tag_name",
    ]


def test_error_message_is_machine_readable() -> None:
    error = OracleAuthenticationError("invalid   api\nkey", provider="openai", http_status=401)

    assert str(error) == "provider=openai code=auth http_status=401 detail=invalid api key"
    assert not error.retryable
    assert OracleRateLimitError("slow down").retryable
    assert OracleTimeoutError("deadline").retryable


def test_subclasses_pin_code_and_allow_retryable_override() -> None:
    closed = OracleServiceError("connection reset", provider="openai", retryable=False)

    assert closed.code == "service"
    assert not closed.retryable
    assert OracleServiceError("502").retryable
    rendered = str(OracleResponseError("not json"))
    assert rendered == "provider=oracle code=response_invalid detail=not json"


def test_compute_backoff_delay_is_bounded_and_deterministic() -> None:
    random_values = iter((0.0, 1.0, 0.5))

    def random_fn() -> float:
        return next(random_values)

    config = BackoffConfig(
        max_retries=4,
        initial_delay_seconds=1.0,
        multiplier=3.0,
        max_delay_seconds=5.0,
        jitter_ratio=0.5,
    )

    assert compute_backoff_delay(retry_number=1, config=config, random_fn=random_fn) == (
        pytest.approx(0.5)
    )
    assert compute_backoff_delay(retry_number=2, config=config, random_fn=random_fn) == (
        pytest.approx(4.5)
    )
    assert compute_backoff_delay(retry_number=3, config=config, random_fn=random_fn) == (
        pytest.approx(5.0)
    )


def test_backoff_config_validation() -> None:
    with pytest.raises(ValueError, match="max_retries must be >= 0"):
        BackoffConfig(max_retries=-1)
    with pytest.raises(ValueError, match="initial_delay_seconds must be <= max_delay_seconds"):
        BackoffConfig(initial_delay_seconds=10.0, max_delay_seconds=1.0)


async def test_run_with_retries_recovers_from_retryable_errors() -> None:
    outcomes: list[object] = [OracleRateLimitError("429"), OracleTimeoutError("slow"), True]
    retries: list[tuple[int, str]] = []
    sleep_recorder = _SleepRecorder()

    async def operation() -> bool:
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        assert isinstance(outcome, bool)
        return outcome

    result = await run_with_retries(
        operation,
        map_exception=lambda exc: OracleError(
            provider="test", code="mapped", detail=str(exc), retryable=False
        ),
        backoff=BackoffConfig(max_retries=2, initial_delay_seconds=0.1, jitter_ratio=0.0),
        sleep=sleep_recorder,
        on_retry=lambda attempt, error, delay: retries.append((attempt, error.code)),
    )

    assert result is True
    assert sleep_recorder.calls == [pytest.approx(0.1), pytest.approx(0.2)]
    assert retries == [(1, "rate_limit"), (2, "timeout")]


async def test_run_with_retries_stops_after_max_retries() -> None:
    calls = 0
    sleep_recorder = _SleepRecorder()

    async def operation() -> bool:
        nonlocal calls
        calls += 1
        raise OracleRateLimitError("429")

    with pytest.raises(OracleRateLimitError):
        await run_with_retries(
            operation,
            map_exception=lambda exc: OracleError(
                provider="test", code="mapped", detail=str(exc), retryable=False
            ),
            backoff=BackoffConfig(max_retries=1, initial_delay_seconds=0.0, jitter_ratio=0.0),
            sleep=sleep_recorder,
        )

    assert calls == 2
    assert sleep_recorder.calls == [0.0]


async def test_run_with_retries_maps_foreign_exceptions() -> None:
    async def operation() -> bool:
        raise KeyError("boom")

    with pytest.raises(OracleError, match="code=mapped") as excinfo:
        await run_with_retries(
            operation,
            map_exception=lambda exc: OracleError(
                provider="test", code="mapped", detail=repr(exc), retryable=False
            ),
            backoff=BackoffConfig(max_retries=3),
            sleep=_SleepRecorder(),
        )

    assert isinstance(excinfo.value.__cause__, KeyError)
