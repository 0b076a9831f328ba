"""Validation engine: runs the rule catalog over a snapshot and aggregates findings."""

from __future__ import annotations

import functools
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from data_steward.domain.entity_schema import EntityCatalog, default_catalog
from data_steward.domain.records import DataSnapshot, Severity, ValidationError
from data_steward.observability.logging import get_logger
from data_steward.validation.rules import RULE_CATALOG, RuleInput, RuleSpec

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ValidationSummary:
    error_count: int
    warning_count: int
    by_kind: dict[str, int] = field(default_factory=dict)

    @property
    def blocking(self) -> bool:
        return self.error_count > 0

    def to_dict(self) -> dict[str, object]:
        return {
            "errors": self.error_count,
            "warnings": self.warning_count,
            "byKind": dict(sorted(self.by_kind.items())),
        }


class ValidationEngine:
    """Stateless runner over an ordered rule catalog.

    Each call is a pure function of its input: the rows are copied into an
    immutable snapshot, every rule runs independently, and rule groups are
    concatenated in catalog order.
    """

    def __init__(
        self,
        rules: Sequence[RuleSpec] = RULE_CATALOG,
        *,
        catalog: EntityCatalog | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._catalog = catalog if catalog is not None else default_catalog()

    @property
    def rules(self) -> tuple[RuleSpec, ...]:
        return self._rules

    def validate(
        self,
        clients: Iterable[object] = (),
        workers: Iterable[object] = (),
        tasks: Iterable[object] = (),
    ) -> list[ValidationError]:
        snapshot = DataSnapshot(
            clients=tuple(clients),  # type: ignore[arg-type]
            workers=tuple(workers),  # type: ignore[arg-type]
            tasks=tuple(tasks),  # type: ignore[arg-type]
        )
        return self.validate_snapshot(snapshot)

    def validate_snapshot(self, snapshot: DataSnapshot) -> list[ValidationError]:
        data = RuleInput(snapshot=snapshot, catalog=self._catalog)
        errors: list[ValidationError] = []
        for rule in self._rules:
            try:
                findings = list(rule.check(data))
            except Exception:
                logger.exception("validation_rule_crashed", rule_id=rule.rule_id)
                continue
            errors.extend(findings)

        logger.debug(
            "validation_completed",
            counts=snapshot.counts(),
            findings=len(errors),
            rules=len(self._rules),
        )
        return errors


@functools.lru_cache(maxsize=1)
def _default_engine() -> ValidationEngine:
    return ValidationEngine()


def validate(
    clients: Iterable[object] = (),
    workers: Iterable[object] = (),
    tasks: Iterable[object] = (),
) -> list[ValidationError]:
    """Validate the three collections with the builtin rule catalog."""

    return _default_engine().validate(clients, workers, tasks)


def summarize(errors: Iterable[ValidationError]) -> ValidationSummary:
    by_kind: Counter[str] = Counter()
    error_count = 0
    warning_count = 0
    for item in errors:
        by_kind[item.kind.value] += 1
        if item.severity is Severity.ERROR:
            error_count += 1
        else:
            warning_count += 1
    return ValidationSummary(
        error_count=error_count, warning_count=warning_count, by_kind=dict(by_kind)
    )


def has_blocking_errors(errors: Iterable[ValidationError]) -> bool:
    """True when any finding should gate export/finalize actions."""

    return any(item.is_blocking for item in errors)


__all__ = [
    "ValidationEngine",
    "ValidationSummary",
    "has_blocking_errors",
    "summarize",
    "validate",
]
