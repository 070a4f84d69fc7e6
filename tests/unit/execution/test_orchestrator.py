"""
inferret — unit tests for the concurrency orchestrator

File: tests/unit/execution/test_orchestrator.py

Purpose
- Validate bounded fan-out, failure isolation and declaration-ordered reporting.

What this test file should cover
- Results are identical for parallelism 1 and N.
- At most ``parallelism`` units hold a permit at once.
- A failing unit never cancels or hides its siblings.
- Report order follows the Inferfile regardless of completion order.
- Correlation fields are bound while a unit talks to the oracle.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from inferret.config.schema import Configuration, FileSpec, InferenceSpec, TagSpec
from inferret.execution import InferenceExecutor, OutcomeStatus, run, run_inferences
from inferret.observability import get_correlation_context
from inferret.oracle import OracleRateLimitError, OracleRequest
from inferret.utils import BoundedSemaphore


@dataclass(slots=True)
class _KeyedOracle:
    """Deterministic oracle: verdicts and scheduling delays are keyed by assertion."""

    verdicts: dict[str, bool]
    yields: dict[str, int] = field(default_factory=dict)
    failures: dict[str, Exception] = field(default_factory=dict)
    completed: list[str] = field(default_factory=list)
    contexts: list[dict[str, str]] = field(default_factory=list)
    active: int = 0
    peak_active: int = 0

    async def ask(self, request: OracleRequest) -> bool:
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        self.contexts.append(get_correlation_context())
        try:
            for _ in range(self.yields.get(request.assertion, 1)):
                await asyncio.sleep(0)
            failure = self.failures.get(request.assertion)
            if failure is not None:
                raise failure
            self.completed.append(request.assertion)
            return self.verdicts[request.assertion]
        finally:
            self.active -= 1


def _configuration(*files: tuple[str, tuple[tuple[str, tuple[str, ...]], ...]]) -> Configuration:
    file_specs = []
    for path, tags in files:
        tag_specs = tuple(
            TagSpec(
                name=tag_name,
                code=f"# code for {tag_name}\n",
                inferences=tuple(
                    InferenceSpec(assertion=assertion, model="gpt-4o", tag_name=tag_name)
                    for assertion in assertions
                ),
            )
            for tag_name, assertions in tags
        )
        file_specs.append(FileSpec(path=path, resolved_path=Path("/repo") / path, tags=tag_specs))
    return Configuration(files=tuple(file_specs))


SIX_UNITS = _configuration(
    ("a.py", (("one", ("A1", "A2")), ("two", ("A3",)))),
    ("b.py", (("one", ("B1", "B2", "B3")),)),
)
SIX_VERDICTS = {"A1": True, "A2": False, "A3": True, "B1": True, "B2": False, "B3": True}


@pytest.mark.parametrize("parallelism", [1, 2, 3, 6, 10])
async def test_results_do_not_depend_on_parallelism(parallelism: int) -> None:
    baseline = await run_inferences(
        SIX_UNITS, oracle=_KeyedOracle(verdicts=SIX_VERDICTS), parallelism=1
    )
    report = await run_inferences(
        SIX_UNITS, oracle=_KeyedOracle(verdicts=SIX_VERDICTS), parallelism=parallelism
    )

    assert report == baseline
    assert [outcome.assertion for outcome in report.outcomes] == [
        "A1",
        "A2",
        "A3",
        "B1",
        "B2",
        "B3",
    ]
    assert [outcome.assertion for outcome in report.assertion_failures] == ["A2", "B2"]


@pytest.mark.parametrize("parallelism", [1, 2, 4])
async def test_admission_is_bounded(parallelism: int) -> None:
    oracle = _KeyedOracle(verdicts=SIX_VERDICTS, yields=dict.fromkeys(SIX_VERDICTS, 3))
    semaphore = BoundedSemaphore(parallelism)

    await run_inferences(SIX_UNITS, oracle=oracle, parallelism=parallelism, semaphore=semaphore)

    assert semaphore.peak == parallelism
    assert oracle.peak_active <= parallelism
    assert semaphore.in_use == 0
    assert semaphore.admitted == 6


async def test_report_order_ignores_completion_order() -> None:
    yields = {"A1": 12, "A2": 9, "A3": 6, "B1": 3, "B2": 1, "B3": 1}
    oracle = _KeyedOracle(verdicts=SIX_VERDICTS, yields=yields)

    report = await run_inferences(SIX_UNITS, oracle=oracle, parallelism=6)

    assert oracle.completed[0] != "A1"
    assert [outcome.assertion for outcome in report.outcomes] == list(SIX_VERDICTS)


async def test_failing_unit_does_not_cancel_siblings() -> None:
    oracle = _KeyedOracle(
        verdicts=SIX_VERDICTS,
        yields={"A1": 1, "A2": 5, "A3": 5, "B1": 5, "B2": 5, "B3": 5},
        failures={"A1": OracleRateLimitError("429", provider="openai")},
    )

    report = await run_inferences(SIX_UNITS, oracle=oracle, parallelism=3)

    statuses = [outcome.status for outcome in report.outcomes]
    assert statuses == [
        OutcomeStatus.ERRORED,
        OutcomeStatus.FAILED,
        OutcomeStatus.PASSED,
        OutcomeStatus.PASSED,
        OutcomeStatus.FAILED,
        OutcomeStatus.PASSED,
    ]
    assert sorted(oracle.completed) == ["A2", "A3", "B1", "B2", "B3"]
    errored = report.errors[0]
    assert errored.file_path == "a.py"
    assert errored.error is not None and "code=rate_limit" in errored.error
    assert report.summary() == {"total": 6, "passed": 3, "failed": 2, "errored": 1}
    assert not report.is_clean


async def test_unexpected_executor_failure_is_contained() -> None:
    class _ExplodingExecutor(InferenceExecutor):
        async def execute(self, inference, code, *, file_path=""):  # type: ignore[no-untyped-def]
            if inference.assertion == "B1":
                raise KeyError("missing")
            return await super().execute(inference, code, file_path=file_path)

    executor = _ExplodingExecutor(_KeyedOracle(verdicts=SIX_VERDICTS))

    report = await run_inferences(SIX_UNITS, executor=executor, parallelism=2)

    assert [outcome.assertion for outcome in report.errors] == ["B1"]
    assert report.errors[0].error == "KeyError: 'missing'"
    assert len(report.outcomes) == 6


async def test_correlation_fields_are_bound_per_unit() -> None:
    oracle = _KeyedOracle(verdicts=SIX_VERDICTS)

    await run_inferences(SIX_UNITS, oracle=oracle, parallelism=1)

    assert oracle.contexts[0] == {"file": "a.py", "tag": "one", "unit": "1"}
    assert oracle.contexts[-1] == {"file": "b.py", "tag": "one", "unit": "6"}
    assert get_correlation_context() == {}


async def test_empty_configuration_yields_empty_clean_report() -> None:
    report = await run_inferences(
        Configuration(), oracle=_KeyedOracle(verdicts={}), parallelism=4
    )

    assert report.outcomes == ()
    assert report.is_clean


async def test_argument_validation() -> None:
    oracle = _KeyedOracle(verdicts=SIX_VERDICTS)

    with pytest.raises(ValueError, match="parallelism must be >= 1"):
        await run_inferences(SIX_UNITS, oracle=oracle, parallelism=0)
    with pytest.raises(ValueError, match="exactly one of oracle or executor"):
        await run_inferences(SIX_UNITS, parallelism=1)
    with pytest.raises(ValueError, match="exactly one of oracle or executor"):
        await run_inferences(
            SIX_UNITS, oracle=oracle, executor=InferenceExecutor(oracle), parallelism=1
        )
    with pytest.raises(ValueError, match="semaphore limit must equal parallelism"):
        await run_inferences(
            SIX_UNITS, oracle=oracle, parallelism=2, semaphore=BoundedSemaphore(3)
        )


def test_sync_run_wrapper() -> None:
    report = run(SIX_UNITS, oracle=_KeyedOracle(verdicts=SIX_VERDICTS), parallelism=2)

    assert report.summary() == {"total": 6, "passed": 4, "failed": 2, "errored": 0}
