"""Module entrypoint for ``python -m distgate``."""

from __future__ import annotations

from distgate.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
