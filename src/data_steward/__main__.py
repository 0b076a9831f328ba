"""Module entrypoint for ``python -m data_steward``."""

from __future__ import annotations

from data_steward.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
