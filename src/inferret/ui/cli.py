"""Command-line interface router for inferret."""

from __future__ import annotations

import argparse
import asyncio
import importlib.util
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from inferret import __version__
from inferret.config import (
    ConfigLoadError,
    Configuration,
    RuntimeSettings,
    load_inferfile,
    load_settings,
    validate_inferfile,
)
from inferret.constants import DEFAULT_INFERFILE
from inferret.execution import AggregateReport, run_inferences
from inferret.extraction import ExtractionError, MarkerMatching, resolve_configuration
from inferret.observability import setup_logging
from inferret.oracle import BackoffConfig, OpenAIOracle, OracleClient
from inferret.ui.render import CLIRenderer, create_renderer

logger = logging.getLogger(__name__)

VALIDATION_OK_MESSAGE: Final[str] = "Validation successful."


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_global_options(parser: argparse.ArgumentParser, *, suppress: bool) -> None:
    # Subcommand copies use SUPPRESS so an option given before the command is
    # not reset by the subparser defaults.
    default = argparse.SUPPRESS if suppress else None
    parser.add_argument(
        "-f",
        "--file",
        dest="inferfile",
        default=default,
        help=(
            f"Path to the Inferfile (default: ./{DEFAULT_INFERFILE}). "
            "Relative paths inside it resolve against its directory."
        ),
    )
    parser.add_argument(
        "--openai-api-key",
        default=default,
        help="OpenAI API key (default: $OPENAI_API_KEY).",
    )
    parser.add_argument(
        "--openai-api-url",
        default=default,
        help="OpenAI-compatible API base URL.",
    )
    parser.add_argument(
        "--parallel-threads",
        type=int,
        default=default,
        help="Number of inferences evaluated concurrently (default: 1).",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=default,
        help="Retries per oracle call for transient errors (default: 2).",
    )
    parser.add_argument(
        "--timeout",
        dest="timeout_seconds",
        type=float,
        default=default,
        help="Per-request oracle timeout in seconds (default: 60).",
    )
    parser.add_argument(
        "--loose-markers",
        action="store_true",
        default=default,
        help="Match region markers anywhere in a line instead of as whole tokens.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=default,
        help="Show passing inferences and debug logging.",
    )
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default=default,
        help="Log record format on stderr (default: text).",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        default=argparse.SUPPRESS if suppress else False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="infer",
        description=(
            "inferret — assert properties of source code regions with an LLM.\n\n"
            "Common workflows:\n"
            "  infer                       Run every inference in ./Inferfile\n"
            "  infer validate              Check the Inferfile without calling the model\n"
            "  infer -f path/Inferfile --parallel-threads 4\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_global_options(parser, suppress=False)
    parser.set_defaults(handler=_cmd_infer, json=False)

    subparsers = parser.add_subparsers(dest="command")

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        help="Load and check the Inferfile without contacting the oracle",
    )
    _add_global_options(validate_parser, suppress=True)
    validate_parser.set_defaults(handler=_cmd_validate)

    # infer ---------------------------------------------------------------
    infer_parser = subparsers.add_parser(
        "infer",
        help="Run every inference and report failures (default command)",
    )
    _add_global_options(infer_parser, suppress=True)
    infer_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit the run report as JSON on stdout.",
    )
    infer_parser.set_defaults(handler=_cmd_infer)

    return parser


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace) -> int:
    settings = _settings(args)
    renderer = _renderer(args, settings)
    try:
        configuration = validate_inferfile(settings.inferfile)
    except ConfigLoadError as exc:
        raise CLIError(str(exc), exit_code=2) from exc
    logger.debug(
        "validated %s: %d file(s), %d inference(s)",
        settings.inferfile,
        len(configuration.files),
        configuration.inference_count,
    )
    renderer.text(VALIDATION_OK_MESSAGE)
    return 0


def _cmd_infer(args: argparse.Namespace) -> int:
    settings = _settings(args)
    renderer = _renderer(args, settings)
    configuration = _load_resolved(settings)
    oracle = build_oracle(settings)

    report = _run(configuration, oracle, settings)

    if _flag(args, "json"):
        renderer.json(report.to_dict())
        for outcome in report.failures:
            renderer.outcome(outcome)
    else:
        renderer.report(report)
    return 0 if report.is_clean else 1


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_oracle(settings: RuntimeSettings) -> OracleClient:
    """Create the OpenAI-backed oracle described by ``settings``."""

    if importlib.util.find_spec("openai") is None:
        raise CLIError(
            "The 'openai' package is not installed.\n"
            "  Install it:  pip install inferret",
            exit_code=3,
        )
    api_key = settings.resolve_api_key()
    if api_key is None:
        raise CLIError(
            f"No OpenAI API key: pass --openai-api-key or set {settings.openai_api_key_env}.",
            exit_code=3,
        )
    return OpenAIOracle(
        api_key=api_key,
        api_key_env=settings.openai_api_key_env,
        base_url=settings.openai_api_url,
        timeout_seconds=settings.timeout_seconds,
        backoff=BackoffConfig(max_retries=settings.max_retries),
    )


def _settings(args: argparse.Namespace) -> RuntimeSettings:
    overrides = {
        "inferfile": getattr(args, "inferfile", None),
        "openai_api_key": getattr(args, "openai_api_key", None),
        "openai_api_url": getattr(args, "openai_api_url", None),
        "parallel_threads": getattr(args, "parallel_threads", None),
        "max_retries": getattr(args, "max_retries", None),
        "timeout_seconds": getattr(args, "timeout_seconds", None),
        "loose_markers": getattr(args, "loose_markers", None),
        "verbose": getattr(args, "verbose", None),
        "log_format": getattr(args, "log_format", None),
    }
    try:
        settings = load_settings(cli_overrides=overrides)
    except ConfigLoadError as exc:
        raise CLIError(str(exc), exit_code=2) from exc
    log_format = "json" if settings.log_format == "json" else "text"
    setup_logging(verbose=settings.verbose, log_format=log_format)
    logger.debug("effective settings: %s", settings.redacted())
    return settings


def _renderer(args: argparse.Namespace, settings: RuntimeSettings) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=settings.verbose)


def _load_resolved(settings: RuntimeSettings) -> Configuration:
    matching = MarkerMatching.SUBSTRING if settings.loose_markers else MarkerMatching.EXACT
    try:
        configuration = load_inferfile(settings.inferfile)
        return resolve_configuration(configuration, matching=matching)
    except (ConfigLoadError, ExtractionError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _run(
    configuration: Configuration,
    oracle: OracleClient,
    settings: RuntimeSettings,
) -> AggregateReport:
    return asyncio.run(
        run_inferences(configuration, oracle=oracle, parallelism=settings.parallel_threads)
    )


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


__all__ = ["CLIError", "VALIDATION_OK_MESSAGE", "build_oracle", "build_parser", "run_cli"]
