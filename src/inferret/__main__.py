"""Module entrypoint for ``python -m inferret``."""

from __future__ import annotations

from inferret.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
