"""Schema-aware mediation between free-form model text and typed values."""

from data_steward.structured.cleaning import clean_response
from data_steward.structured.mediator import (
    ResponseParseError,
    SchemaMismatchError,
    StructuredOutputError,
    StructuredOutputMediator,
    augment_prompt,
    decode_response,
    generate_structured,
)
from data_steward.structured.retry import (
    BackoffConfig,
    RetryPolicy,
    RetryState,
    compute_backoff_delay,
)
from data_steward.structured.schema import (
    ConformanceResult,
    FieldKind,
    FieldSpec,
    SchemaIssue,
    StructuredSchema,
    build_example,
    check_conformance,
)

__all__ = [
    "BackoffConfig",
    "ConformanceResult",
    "FieldKind",
    "FieldSpec",
    "ResponseParseError",
    "RetryPolicy",
    "RetryState",
    "SchemaIssue",
    "SchemaMismatchError",
    "StructuredOutputError",
    "StructuredOutputMediator",
    "StructuredSchema",
    "augment_prompt",
    "build_example",
    "check_conformance",
    "clean_response",
    "compute_backoff_delay",
    "decode_response",
    "generate_structured",
]
