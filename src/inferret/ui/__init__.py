"""UI package exports for the CLI and output rendering."""

from inferret.ui.cli import CLIError, build_oracle, build_parser, run_cli
from inferret.ui.render import CLIRenderer, create_renderer

__all__ = [
    "CLIError",
    "CLIRenderer",
    "build_oracle",
    "build_parser",
    "create_renderer",
    "run_cli",
]
