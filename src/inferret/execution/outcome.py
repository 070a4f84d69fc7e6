"""Per-inference outcomes and the aggregate run report."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum

from inferret.config.schema import InferenceSpec


class OutcomeStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Result of running one inference's sampling protocol."""

    inference: InferenceSpec
    status: OutcomeStatus
    success_rate: float = 0.0
    successes: int = 0
    samples: int = 0
    file_path: str = ""
    error: str | None = None

    def __post_init__(self) -> None:
        if self.status is OutcomeStatus.ERRORED:
            if not self.error:
                raise ValueError("errored outcomes must carry an error message")
        elif self.samples != self.inference.count:
            raise ValueError("completed outcomes must cover every sample")
        if not (0.0 <= self.success_rate <= 1.0):
            raise ValueError("success_rate must be between 0.0 and 1.0")

    @classmethod
    def errored(
        cls,
        inference: InferenceSpec,
        error: BaseException | str,
        *,
        file_path: str = "",
    ) -> ExecutionOutcome:
        return cls(
            inference=inference,
            status=OutcomeStatus.ERRORED,
            file_path=file_path,
            error=str(error) or error.__class__.__name__,
        )

    @property
    def passed(self) -> bool:
        return self.status is OutcomeStatus.PASSED

    @property
    def is_failure(self) -> bool:
        return self.status is not OutcomeStatus.PASSED

    @property
    def assertion(self) -> str:
        return self.inference.assertion

    @property
    def tag_name(self) -> str:
        return self.inference.tag_name

    def describe(self) -> str:
        """One-line user-facing description of this outcome."""

        if self.status is OutcomeStatus.ERRORED:
            return f"Inference error: {self.assertion}: {self.error}"
        verb = "successful" if self.passed else "failed"
        return (
            f"Inference {verb}: {self.assertion}. "
            f"Success rate: {self.success_rate * 100:.2f}% "
            f"(Threshold: {self.inference.threshold * 100:.2f}%)"
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "file": self.file_path,
            "tag": self.tag_name,
            "assertion": self.assertion,
            "model": self.inference.model,
            "status": self.status.value,
            "success_rate": self.success_rate,
            "successes": self.successes,
            "samples": self.samples,
            "threshold": self.inference.threshold,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True, slots=True)
class AggregateReport:
    """All outcomes of one run, in Inferfile declaration order."""

    outcomes: tuple[ExecutionOutcome, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "outcomes", tuple(self.outcomes))

    @property
    def failures(self) -> tuple[ExecutionOutcome, ...]:
        """Logical failures and execution errors; the run is clean iff this is empty."""

        return tuple(outcome for outcome in self.outcomes if outcome.is_failure)

    @property
    def assertion_failures(self) -> tuple[ExecutionOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status is OutcomeStatus.FAILED)

    @property
    def errors(self) -> tuple[ExecutionOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status is OutcomeStatus.ERRORED)

    @property
    def is_clean(self) -> bool:
        return not self.failures

    def summary(self) -> dict[str, int]:
        counts = Counter(outcome.status for outcome in self.outcomes)
        return {
            "total": len(self.outcomes),
            "passed": counts[OutcomeStatus.PASSED],
            "failed": counts[OutcomeStatus.FAILED],
            "errored": counts[OutcomeStatus.ERRORED],
        }

    def to_dict(self) -> dict[str, object]:
        return {
            "clean": self.is_clean,
            "summary": self.summary(),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


__all__ = ["AggregateReport", "ExecutionOutcome", "OutcomeStatus"]
