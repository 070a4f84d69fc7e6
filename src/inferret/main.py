"""Process entrypoint for ``infer`` and ``python -m inferret``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Process exit codes, stable across releases."""

    SUCCESS = 0
    INFERENCE_FAILED = 1
    CONFIG_ERROR = 2
    ORACLE_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    try:
        from inferret.ui.cli import run_cli

        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _as_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - last line before the process exits.
        exit_code = classify_exception(exc)
        if exit_code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        else:
            print(f"error: {str(exc).strip() or type(exc).__name__}", file=sys.stderr)
        return int(exit_code)


def classify_exception(exc: BaseException) -> ExitCode:
    """Map an escaped exception, or anything it was raised from, to an exit code."""

    from inferret.config.loader import ConfigLoadError
    from inferret.extraction.regions import ExtractionError
    from inferret.oracle.base import OracleError

    routes: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
        ((ConfigLoadError, ExtractionError), ExitCode.CONFIG_ERROR),
        ((OracleError,), ExitCode.ORACLE_ERROR),
    )
    for cause in _causes(exc):
        for error_types, exit_code in routes:
            if isinstance(cause, error_types):
                return exit_code
        if isinstance(cause, ModuleNotFoundError) and cause.name == "openai":
            return ExitCode.ORACLE_ERROR
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def _as_exit_code(raw_code: object) -> int:
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, int):
        known = {code.value for code in ExitCode}
        return raw_code if raw_code in known else int(ExitCode.INTERNAL_ERROR)
    # argparse and sys.exit("message") exit with a string.
    message = str(raw_code).strip()
    if message:
        print(message, file=sys.stderr)
    return int(ExitCode.INTERNAL_ERROR)


__all__ = ["ExitCode", "classify_exception", "cli_entrypoint"]
