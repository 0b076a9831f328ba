"""Record model, error taxonomy and the declarative entity column catalog."""

from data_steward.domain.entity_schema import (
    ArrayField,
    EntityCatalog,
    EntityCatalogError,
    EntitySchema,
    NumericBound,
    default_catalog,
)
from data_steward.domain.records import (
    AUTO_APPLY_CONFIDENCE,
    ClientRecord,
    CorrectionSuggestion,
    DataSnapshot,
    EntityType,
    ErrorKind,
    JSONValue,
    ModificationChange,
    ModificationSuggestion,
    Severity,
    TaskRecord,
    ValidationError,
    WorkerRecord,
)

__all__ = [
    "AUTO_APPLY_CONFIDENCE",
    "ArrayField",
    "ClientRecord",
    "CorrectionSuggestion",
    "DataSnapshot",
    "EntityCatalog",
    "EntityCatalogError",
    "EntitySchema",
    "EntityType",
    "ErrorKind",
    "JSONValue",
    "ModificationChange",
    "ModificationSuggestion",
    "NumericBound",
    "Severity",
    "TaskRecord",
    "ValidationError",
    "WorkerRecord",
    "default_catalog",
]
