"""
inferret — unit tests for the inference executor

File: tests/unit/execution/test_executor.py

Purpose
- Validate the repeated-sampling protocol and its pass/fail reduction.

What this test file should cover
- Exactly ``count`` sequential oracle calls per inference.
- Inclusive threshold comparison at percentage-point resolution.
- First oracle failure aborts the inference without a partial rate.
- Request construction from the inference and its code region.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from inferret.config.schema import InferenceSpec
from inferret.execution import ExecutionOutcome, InferenceExecutor, OutcomeStatus, meets_threshold
from inferret.oracle import OracleError, OracleRateLimitError, OracleRequest, OracleResponseError


@dataclass(slots=True)
class _ScriptedOracle:
    outcomes: deque[object]
    requests: list[OracleRequest] = field(default_factory=list)

    async def ask(self, request: OracleRequest) -> bool:
        self.requests.append(request)
        if not self.outcomes:
            raise RuntimeError("scripted oracle outcomes exhausted")
        outcome = self.outcomes.popleft()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome  # type: ignore[return-value]


def _oracle(*outcomes: object) -> _ScriptedOracle:
    return _ScriptedOracle(outcomes=deque(outcomes))


def _inference(count: int, threshold: float, **kwargs: object) -> InferenceSpec:
    return InferenceSpec(
        assertion="The function validates the password length",
        model="gpt-4o",
        count=count,
        threshold=threshold,
        tag_name="auth",
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.mark.parametrize(
    ("verdicts", "threshold", "status", "rate"),
    [
        ((True, True, False, False), 0.5, OutcomeStatus.PASSED, 0.5),
        ((True, True, False, False), 0.51, OutcomeStatus.FAILED, 0.5),
        ((True, True, False), 0.67, OutcomeStatus.PASSED, 2 / 3),
        ((True, False, False), 0.67, OutcomeStatus.FAILED, 1 / 3),
        ((True,), 1.0, OutcomeStatus.PASSED, 1.0),
        ((False,), 1.0, OutcomeStatus.FAILED, 0.0),
        ((False, False), 0.0, OutcomeStatus.PASSED, 0.0),
    ],
)
async def test_success_rate_and_threshold(
    verdicts: tuple[bool, ...],
    threshold: float,
    status: OutcomeStatus,
    rate: float,
) -> None:
    oracle = _oracle(*verdicts)
    inference = _inference(len(verdicts), threshold)

    outcome = await InferenceExecutor(oracle).execute(inference, "code\n", file_path="src/auth.py")

    assert outcome.status is status
    assert outcome.success_rate == pytest.approx(rate)
    assert outcome.successes == sum(verdicts)
    assert outcome.samples == len(verdicts)
    assert outcome.file_path == "src/auth.py"
    assert len(oracle.requests) == len(verdicts)


async def test_default_threshold_needs_every_sample() -> None:
    oracle = _oracle(*([True] * 249 + [False]))
    inference = InferenceSpec(assertion="returns a bool", model="gpt-4o", count=250)

    outcome = await InferenceExecutor(oracle).execute(inference, "code\n")

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.successes == 249


async def test_every_sample_sends_the_same_request() -> None:
    oracle = _oracle(True, False, True)
    inference = _inference(3, 0.5, max_tokens=64, temperature=0.3)

    await InferenceExecutor(oracle).execute(inference, "def check():\n    pass\n")

    first = oracle.requests[0]
    assert all(request == first for request in oracle.requests)
    assert first.model == "gpt-4o"
    assert first.max_tokens == 64
    assert first.temperature == 0.3
    assert first.tag_name == "auth"
    assert "def check():" in first.messages[0].content
    assert first.messages[-1].content.endswith("The function validates the password length")


async def test_oracle_error_aborts_remaining_samples() -> None:
    oracle = _oracle(True, OracleRateLimitError("429", provider="openai"), True)

    with pytest.raises(OracleRateLimitError):
        await InferenceExecutor(oracle).execute(_inference(3, 0.5), "code")

    assert len(oracle.requests) == 2


async def test_foreign_exceptions_are_normalized() -> None:
    oracle = _oracle(ConnectionResetError("peer reset"))

    with pytest.raises(OracleError, match="code=client") as excinfo:
        await InferenceExecutor(oracle).execute(_inference(1, 1.0), "code")

    assert isinstance(excinfo.value.__cause__, ConnectionResetError)


@pytest.mark.parametrize("verdict", [1, "true", None])
async def test_non_boolean_verdicts_are_rejected(verdict: object) -> None:
    oracle = _oracle(verdict)

    with pytest.raises(OracleResponseError, match="expected bool"):
        await InferenceExecutor(oracle).execute(_inference(1, 1.0), "code")


def test_outcome_descriptions() -> None:
    inference = _inference(3, 0.67)
    passed = ExecutionOutcome(
        inference=inference,
        status=OutcomeStatus.PASSED,
        success_rate=2 / 3,
        successes=2,
        samples=3,
    )
    errored = ExecutionOutcome.errored(inference, OracleRateLimitError("429"))

    assert passed.describe() == (
        "Inference successful: The function validates the password length. "
        "Success rate: 66.67% (Threshold: 67.00%)"
    )
    assert errored.describe().startswith(
        "Inference error: The function validates the password length: provider=oracle"
    )
    assert errored.is_failure
    assert errored.to_dict()["status"] == "errored"


def test_outcome_invariants() -> None:
    inference = _inference(3, 0.5)

    with pytest.raises(ValueError, match="cover every sample"):
        ExecutionOutcome(inference=inference, status=OutcomeStatus.PASSED, samples=2)
    with pytest.raises(ValueError, match="must carry an error"):
        ExecutionOutcome(inference=inference, status=OutcomeStatus.ERRORED)


@pytest.mark.parametrize(
    ("successes", "count", "threshold", "expected"),
    [
        (2, 3, 0.67, True),
        (2, 3, 0.66, True),
        (2, 3, 0.68, False),
        (2, 4, 0.5, True),
        (2, 4, 0.51, False),
        (249, 250, 1.0, False),
        (250, 250, 1.0, True),
        (505, 1000, 0.51, False),
        (510, 1000, 0.51, True),
        (0, 5, 0.0, True),
    ],
)
def test_meets_threshold(successes: int, count: int, threshold: float, expected: bool) -> None:
    assert meets_threshold(successes, count, threshold) is expected


@settings(max_examples=100, derandomize=True, deadline=None)
@given(
    count=st.integers(min_value=1, max_value=50),
    data=st.data(),
    threshold=st.floats(min_value=0.0, max_value=1.0),
)
def test_property_more_successes_never_flip_pass_to_fail(
    count: int,
    data: st.DataObject,
    threshold: float,
) -> None:
    successes = data.draw(st.integers(min_value=0, max_value=count - 1))

    if meets_threshold(successes, count, threshold):
        assert meets_threshold(successes + 1, count, threshold)
    assert meets_threshold(count, count, threshold)
