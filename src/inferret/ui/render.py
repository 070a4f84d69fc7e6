"""Output rendering for the inferret CLI.

File: src/inferret/ui/render.py

Purpose
- Provide a thin rendering layer for run reports and diagnostics.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.

Functional requirements
- Plain-text rendering must always work on any stream.
- Failure lines go to the error stream so stdout stays machine-consumable with --json.
"""

from __future__ import annotations

import json
import os
import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from inferret.execution.outcome import AggregateReport, ExecutionOutcome

_GREEN = "\033[32m"
_RED = "\033[31m"
_RESET = "\033[0m"


def _color_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces deterministic plain-text output unless the target is a terminal.
    """

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.verbose = verbose
        self._out = out if out is not None else sys.stdout
        self._err = err if err is not None else sys.stderr
        self._no_color = no_color

    def text(self, line: str) -> None:
        print(line, file=self._out)

    def error(self, line: str) -> None:
        print(line, file=self._err)

    def ok(self, label: str) -> None:
        """Print a passing outcome."""

        print(f"  {self._paint('OK', _GREEN, self._out)}  {label}", file=self._out)

    def fail(self, label: str) -> None:
        """Print a failing outcome to the error stream."""

        print(f"  {self._paint('FAIL', _RED, self._err)}  {label}", file=self._err)

    def outcome(self, outcome: ExecutionOutcome) -> None:
        label = f"[{outcome.file_path}:{outcome.tag_name}] {outcome.describe()}"
        if outcome.passed:
            if self.verbose:
                self.ok(label)
        else:
            self.fail(label)

    def report(self, report: AggregateReport) -> None:
        """Print every failure and, when verbose or unclean, a one-line summary.

        A clean run without ``verbose`` prints nothing.
        """

        for outcome in report.outcomes:
            self.outcome(outcome)
        summary = report.summary()
        line = (
            f"{summary['total']} inference(s): {summary['passed']} passed, "
            f"{summary['failed']} failed, {summary['errored']} errored"
        )
        if not report.is_clean:
            self.error(line)
        elif self.verbose:
            self.text(line)

    def json(self, payload: object) -> None:
        print(json.dumps(payload, indent=2, sort_keys=True), file=self._out)

    def _paint(self, text: str, color: str, stream: TextIO) -> str:
        if not _color_allowed(self._no_color, stream):
            return text
        return f"{color}{text}{_RESET}"


def create_renderer(
    *,
    no_color: bool = False,
    verbose: bool = False,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose, out=out, err=err)


__all__ = ["CLIRenderer", "create_renderer"]
