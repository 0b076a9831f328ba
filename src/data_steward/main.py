"""Process entrypoint: maps CLI outcomes onto the steward exit-code contract."""

from __future__ import annotations

import sys
import traceback
from collections.abc import Sequence
from enum import IntEnum

from data_steward.config.loader import ConfigLoadError
from data_steward.config.schema import ConfigValidationError
from data_steward.providers.base import ProviderError
from data_steward.structured.mediator import StructuredOutputError
from data_steward.ui.cli import run_cli


class ExitCode(IntEnum):
    SUCCESS = 0
    VALIDATION_FAILED = 1  # blocking findings
    CONFIG_ERROR = 2  # config, usage or unreadable input files
    PROVIDER_ERROR = 3  # backend failure or output that never conformed
    INTERNAL_ERROR = 4


_CONFIG_FAILURES = (ConfigLoadError, ConfigValidationError, FileNotFoundError, PermissionError)
_PROVIDER_FAILURES = (ProviderError, StructuredOutputError)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and always return an ``ExitCode`` value."""

    try:
        outcome = run_cli(argv)
    except SystemExit as exc:
        # argparse: 0 for --help, 2 for usage errors.
        outcome = exc.code
    except KeyboardInterrupt:
        sys.stderr.write("interrupted\n")
        return int(ExitCode.INTERNAL_ERROR)
    except Exception as exc:
        code = exit_code_for(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            sys.stderr.write(f"error: {exc}\n")
        return int(code)

    if outcome is None:
        return int(ExitCode.SUCCESS)
    if isinstance(outcome, int) and outcome in set(ExitCode):
        return outcome
    if isinstance(outcome, str) and outcome.strip():
        sys.stderr.write(outcome.strip() + "\n")
    return int(ExitCode.INTERNAL_ERROR)


def exit_code_for(exc: BaseException) -> ExitCode:
    """Classify an uncaught exception by itself or its explicit ``raise ... from`` causes."""

    current: BaseException | None = exc
    while current is not None:
        if isinstance(current, _CONFIG_FAILURES):
            return ExitCode.CONFIG_ERROR
        if isinstance(current, _PROVIDER_FAILURES):
            return ExitCode.PROVIDER_ERROR
        current = current.__cause__
    return ExitCode.INTERNAL_ERROR


def main() -> None:
    raise SystemExit(cli_entrypoint())


__all__ = ["ExitCode", "cli_entrypoint", "exit_code_for", "main"]
