"""Inference execution: sampling, reduction, and bounded fan-out."""

from inferret.execution.executor import InferenceExecutor, meets_threshold
from inferret.execution.orchestrator import run, run_inferences
from inferret.execution.outcome import AggregateReport, ExecutionOutcome, OutcomeStatus

__all__ = [
    "AggregateReport",
    "ExecutionOutcome",
    "InferenceExecutor",
    "OutcomeStatus",
    "meets_threshold",
    "run",
    "run_inferences",
]
