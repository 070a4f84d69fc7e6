"""
inferret — concurrency orchestrator

File: src/inferret/execution/orchestrator.py

Purpose
- Fan every inference of a resolved configuration out to the executor with at
  most ``parallelism`` units talking to the oracle at once.

Functional requirements
- One task per (file, tag, inference) unit, all created up front.
- A unit holds its admission permit for its whole sampling loop.
- A failing unit is recorded as an errored outcome; its siblings keep running.
- The report lists outcomes in Inferfile declaration order regardless of
  completion order.
"""

from __future__ import annotations

import asyncio
import logging

from inferret.config.schema import Configuration, FileSpec, InferenceSpec, TagSpec
from inferret.execution.executor import InferenceExecutor
from inferret.execution.outcome import AggregateReport, ExecutionOutcome
from inferret.observability.logging import correlation_scope
from inferret.oracle.base import OracleClient, OracleError
from inferret.utils.concurrency import BoundedSemaphore

logger = logging.getLogger(__name__)


async def run_inferences(
    configuration: Configuration,
    *,
    oracle: OracleClient | None = None,
    executor: InferenceExecutor | None = None,
    parallelism: int = 1,
    semaphore: BoundedSemaphore | None = None,
) -> AggregateReport:
    """Run every inference of ``configuration`` and collect an aggregate report.

    Exactly one of ``oracle`` or ``executor`` must be supplied. ``semaphore``
    may be passed to observe admission; it must allow ``parallelism`` permits.
    """

    if parallelism < 1:
        raise ValueError("parallelism must be >= 1")
    if (oracle is None) == (executor is None):
        raise ValueError("exactly one of oracle or executor is required")
    if executor is None:
        assert oracle is not None
        executor = InferenceExecutor(oracle)
    if semaphore is None:
        semaphore = BoundedSemaphore(parallelism)
    elif semaphore.limit != parallelism:
        raise ValueError("semaphore limit must equal parallelism")

    units = list(configuration.iter_inferences())
    logger.info("running %d inference(s) with parallelism %d", len(units), parallelism)

    tasks = [
        asyncio.create_task(
            _run_unit(executor, semaphore, file_spec, tag, inference, index),
            name=f"inference-{index}",
        )
        for index, (file_spec, tag, inference) in enumerate(units, start=1)
    ]
    outcomes = await asyncio.gather(*tasks)

    report = AggregateReport(tuple(outcomes))
    logger.info("inference run finished: %s", report.summary())
    return report


def run(
    configuration: Configuration,
    *,
    oracle: OracleClient,
    parallelism: int = 1,
) -> AggregateReport:
    """Synchronous entry point for callers outside an event loop."""

    return asyncio.run(run_inferences(configuration, oracle=oracle, parallelism=parallelism))


async def _run_unit(
    executor: InferenceExecutor,
    semaphore: BoundedSemaphore,
    file_spec: FileSpec,
    tag: TagSpec,
    inference: InferenceSpec,
    index: int,
) -> ExecutionOutcome:
    with correlation_scope(file=file_spec.path, tag=tag.name, unit=str(index)):
        async with semaphore.permit(f"{file_spec.path}:{tag.name}#{index}"):
            try:
                return await executor.execute(inference, tag.code, file_path=file_spec.path)
            except OracleError as exc:
                logger.error("oracle call failed for %r: %s", inference.assertion, exc)
                return ExecutionOutcome.errored(inference, exc, file_path=file_spec.path)
            except Exception as exc:  # noqa: BLE001 - isolate one unit from its siblings.
                logger.exception("unexpected failure for %r", inference.assertion)
                return ExecutionOutcome.errored(
                    inference,
                    f"{exc.__class__.__name__}: {exc}",
                    file_path=file_spec.path,
                )


__all__ = ["run", "run_inferences"]
