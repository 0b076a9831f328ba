"""Deterministic cross-entity validation of clients, workers and tasks."""

from data_steward.validation.engine import (
    ValidationEngine,
    ValidationSummary,
    has_blocking_errors,
    summarize,
    validate,
)
from data_steward.validation.rules import (
    DEFAULT_RULE_REGISTRY,
    RULE_CATALOG,
    RuleInput,
    RuleRegistry,
    RuleSpec,
    builtin_rule,
    make_rule_input,
)

__all__ = [
    "DEFAULT_RULE_REGISTRY",
    "RULE_CATALOG",
    "RuleInput",
    "RuleRegistry",
    "RuleSpec",
    "ValidationEngine",
    "ValidationSummary",
    "builtin_rule",
    "has_blocking_errors",
    "make_rule_input",
    "summarize",
    "validate",
]
