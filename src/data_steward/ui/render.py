"""Output rendering for the steward CLI.

File: src/data_steward/ui/render.py
Last updated: 2026-10-18

Purpose
- Provide a thin plain-text rendering layer for CLI output.
- Respect NO_COLOR environment variable and --no-color CLI flag.

What should be included in this file
- CLIRenderer class with methods for common output patterns.
- Validation finding rendering (grouped table + summary line).

Functional requirements
- Plain-text rendering must always work without external dependencies.

Non-functional requirements
- Deterministic output for the same inputs.
"""

from __future__ import annotations

import os
import sys
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from data_steward.domain.records import ValidationError


def _color_allowed(no_color_flag: bool, stream: IO[str]) -> bool:
    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces clean, deterministic plain-text output. Severity labels are
    colored only when the stream is a terminal and color is not disabled.
    """

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        stream: IO[str] | None = None,
    ) -> None:
        self.verbose = verbose
        self._stream = stream if stream is not None else sys.stdout
        self._color = _color_allowed(no_color, self._stream)

    def _write(self, line: str = "") -> None:
        print(line, file=self._stream)

    def heading(self, text: str) -> None:
        self._write(text)

    def kv(self, key: str, value: object) -> None:
        self._write(f"{key}: {value}")

    def text(self, line: str) -> None:
        self._write(line)

    def blank(self) -> None:
        self._write()

    def section(self, title: str) -> None:
        self._write(f"\n{title}")

    def warning(self, text: str) -> None:
        self._write(f"  Warning: {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._write(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        self._write(f"  {_pad(list(headers))}")
        self._write(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            self._write(f"  {_pad(list(row))}")

    def ok(self, label: str) -> None:
        self._write(f"  {self._paint('OK', '32')}  {label}")

    def fail(self, label: str) -> None:
        self._write(f"  {self._paint('FAIL', '31')}  {label}")

    def findings(self, errors: Sequence[ValidationError]) -> None:
        """Print findings as a table, with suggestions when verbose."""

        if not errors:
            self.text("No validation issues found.")
            return

        rows = [
            (
                self._severity_label(error.severity.value),
                error.entity_type.value,
                str(error.row_index),
                error.column_name,
                error.message,
            )
            for error in errors
        ]
        self.table(("SEVERITY", "ENTITY", "ROW", "COLUMN", "MESSAGE"), rows)
        if self.verbose:
            self.section("Suggestions:")
            for error in errors:
                for suggestion in error.suggestions:
                    self.text(f"  [{error.error_id}] {suggestion}")

    def _severity_label(self, severity: str) -> str:
        return self._paint(severity, "31" if severity == "error" else "33")

    def _paint(self, text: str, code: str) -> str:
        if not self._color:
            return text
        return f"\x1b[{code}m{text}\x1b[0m"


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
