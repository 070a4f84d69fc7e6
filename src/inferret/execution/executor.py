"""
inferret — inference executor

File: src/inferret/execution/executor.py

Purpose
- Run one inference's repeated-sampling protocol and reduce it to pass/fail.

Functional requirements
- ``count`` sequential oracle calls; the first failed call aborts the inference
  with ``OracleError`` and no partial success rate is reported.
- ``success_rate = successes / count``; pass iff the rate reaches ``threshold``
  (inclusive). Thresholds that no fraction of ``count`` can hit exactly are
  compared at percentage-point resolution.

Non-functional requirements
- No randomness or shared state of its own; all non-determinism lives in the oracle.
"""

from __future__ import annotations

import logging
import math

from inferret.config.schema import InferenceSpec
from inferret.constants import THRESHOLD_PRECISION
from inferret.execution.outcome import ExecutionOutcome, OutcomeStatus
from inferret.oracle.base import OracleClient, OracleError, OracleRequest, OracleResponseError
from inferret.oracle.prompts import build_messages

logger = logging.getLogger(__name__)


def meets_threshold(successes: int, count: int, threshold: float) -> bool:
    """Inclusive test of ``successes / count >= threshold``.

    When ``threshold * count`` is a whole number the test is exact, so a
    threshold of 1.0 needs every sample. Otherwise no fraction of ``count`` can
    equal the threshold, which is then read as a two-decimal abbreviation of
    one: 0.67 of 3 samples means 2 of 3.
    """

    required = threshold * count
    nearest = round(required)
    if math.isclose(required, nearest, abs_tol=1e-9):
        return successes >= nearest
    return round(successes / count, THRESHOLD_PRECISION) >= threshold


class InferenceExecutor:
    """Executes inferences against an oracle client."""

    def __init__(self, oracle: OracleClient) -> None:
        self._oracle = oracle

    def build_request(self, inference: InferenceSpec, code: str) -> OracleRequest:
        return OracleRequest(
            model=inference.model,
            code=code,
            assertion=inference.assertion,
            messages=build_messages(
                tag_name=inference.tag_name,
                code=code,
                assertion=inference.assertion,
            ),
            max_tokens=inference.max_tokens,
            temperature=inference.temperature,
            tag_name=inference.tag_name,
        )

    async def execute(
        self,
        inference: InferenceSpec,
        code: str,
        *,
        file_path: str = "",
    ) -> ExecutionOutcome:
        """Sample the oracle ``inference.count`` times and reduce the verdicts.

        Raises ``OracleError`` if any single call fails.
        """

        request = self.build_request(inference, code)
        successes = 0
        for sample in range(1, inference.count + 1):
            verdict = await self._ask(request)
            logger.debug(
                "sample %d/%d for %r: %s", sample, inference.count, inference.assertion, verdict
            )
            if verdict:
                successes += 1

        success_rate = successes / inference.count
        passed = meets_threshold(successes, inference.count, inference.threshold)
        outcome = ExecutionOutcome(
            inference=inference,
            status=OutcomeStatus.PASSED if passed else OutcomeStatus.FAILED,
            success_rate=success_rate,
            successes=successes,
            samples=inference.count,
            file_path=file_path,
        )
        logger.info("%s", outcome.describe())
        return outcome

    async def _ask(self, request: OracleRequest) -> bool:
        try:
            verdict = await self._oracle.ask(request)
        except OracleError:
            raise
        except Exception as exc:  # noqa: BLE001 - normalize foreign client failures.
            raise OracleError(
                provider="oracle",
                code="client",
                detail=f"{exc.__class__.__name__}: {exc}",
                retryable=False,
            ) from exc
        if not isinstance(verdict, bool):
            raise OracleResponseError(
                f"oracle returned {type(verdict).__name__}, expected bool"
            )
        return verdict


__all__ = ["InferenceExecutor", "meets_threshold"]
