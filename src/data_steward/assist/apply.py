"""
data-steward - applying correction and modification suggestions

File: src/data_steward/assist/apply.py
Last updated: 2026-10-18

Purpose
- Produce a new DataSnapshot with accepted cell edits; callers re-run validation after.

Functional requirements
- Pure: input snapshots and rows are never mutated.
- Corrections apply when safe to auto-apply (flagged and confidence > 0.8), or always
  when ``auto_only`` is false.
- Edits against missing rows are skipped and counted, never raised.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from data_steward.domain.records import (
    CorrectionSuggestion,
    DataSnapshot,
    EntityType,
    ModificationSuggestion,
)
from data_steward.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ApplyResult:
    snapshot: DataSnapshot
    applied: int
    skipped: int


class _SnapshotEditor:
    __slots__ = ("_rows", "applied", "skipped")

    def __init__(self, snapshot: DataSnapshot) -> None:
        self._rows: dict[EntityType, list[object]] = {
            entity: list(snapshot.rows(entity)) for entity in EntityType
        }
        self.applied = 0
        self.skipped = 0

    def set_cell(self, entity: EntityType, row_index: int, field: str, value: object) -> None:
        rows = self._rows[entity]
        if not 0 <= row_index < len(rows) or not isinstance(rows[row_index], Mapping):
            self.skipped += 1
            return
        updated = dict(rows[row_index])  # type: ignore[arg-type]
        updated[field] = copy.deepcopy(value)
        rows[row_index] = updated
        self.applied += 1

    def result(self) -> ApplyResult:
        snapshot = DataSnapshot(
            clients=tuple(self._rows[EntityType.CLIENTS]),  # type: ignore[arg-type]
            workers=tuple(self._rows[EntityType.WORKERS]),  # type: ignore[arg-type]
            tasks=tuple(self._rows[EntityType.TASKS]),  # type: ignore[arg-type]
        )
        return ApplyResult(snapshot=snapshot, applied=self.applied, skipped=self.skipped)


def apply_corrections(
    snapshot: DataSnapshot,
    corrections: Iterable[CorrectionSuggestion],
    *,
    auto_only: bool = True,
) -> ApplyResult:
    editor = _SnapshotEditor(snapshot)
    for correction in corrections:
        if auto_only and not correction.is_safe_to_apply:
            editor.skipped += 1
            continue
        editor.set_cell(
            correction.entity_type,
            correction.row_index,
            correction.field,
            correction.suggested_value,
        )
    result = editor.result()
    logger.info("corrections_applied", applied=result.applied, skipped=result.skipped)
    return result


def apply_modifications(
    snapshot: DataSnapshot,
    suggestions: Iterable[ModificationSuggestion],
    *,
    min_confidence: float = 0.0,
) -> ApplyResult:
    """Apply every change whose confidence is at least ``min_confidence``."""

    editor = _SnapshotEditor(snapshot)
    for suggestion in suggestions:
        for change in suggestion.changes:
            if change.confidence < min_confidence:
                editor.skipped += 1
                continue
            editor.set_cell(
                suggestion.entity_type, change.row_index, change.field, change.new_value
            )
    result = editor.result()
    logger.info("modifications_applied", applied=result.applied, skipped=result.skipped)
    return result


__all__ = ["ApplyResult", "apply_corrections", "apply_modifications"]
