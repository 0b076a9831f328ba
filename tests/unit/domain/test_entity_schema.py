"""Unit tests for the declarative entity column catalog."""

from __future__ import annotations

import pytest

from data_steward.domain.entity_schema import (
    EntityCatalogError,
    default_catalog,
    load_catalog,
    parse_catalog,
)
from data_steward.domain.records import EntityType

_MINIMAL = """
- entity: clients
  id_column: ClientID
  required_columns: [ClientID]
- entity: workers
  id_column: WorkerID
- entity: tasks
  id_column: TaskID
"""


def test_default_catalog_declares_entities_in_fixed_order() -> None:
    catalog = default_catalog()

    assert [schema.entity for schema in catalog] == [
        EntityType.CLIENTS,
        EntityType.WORKERS,
        EntityType.TASKS,
    ]
    assert catalog.get("workers").required_columns == (
        "WorkerID",
        "WorkerName",
        "Skills",
        "AvailableSlots",
    )


def test_default_catalog_bounds_and_array_fields() -> None:
    catalog = default_catalog()

    priority = catalog.get(EntityType.CLIENTS).ranges[0]
    assert (priority.field, priority.minimum, priority.maximum) == ("PriorityLevel", 1.0, 5.0)
    assert [item.field for item in catalog.get(EntityType.TASKS).minimums] == [
        "Duration",
        "MaxConcurrent",
    ]
    assert [(item.field, item.element) for item in catalog.get("workers").array_fields] == [
        ("AvailableSlots", "number"),
        ("Skills", "string"),
    ]


def test_parse_catalog_accepts_minimal_entities() -> None:
    catalog = parse_catalog(_MINIMAL)

    assert catalog.get("clients").array_fields == ()
    assert catalog.get("tasks").attributes_column is None


def test_parse_catalog_requires_each_entity_once() -> None:
    text = _MINIMAL.replace("entity: tasks", "entity: workers")

    with pytest.raises(EntityCatalogError, match="exactly once"):
        parse_catalog(text)


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("{}", "top-level YAML sequence"),
        ("- entity: clients\n  id_column: ClientID\n  extra: 1\n", "unexpected fields"),
        ("- [unclosed", "invalid YAML"),
    ],
)
def test_parse_catalog_rejects_malformed_documents(text: str, message: str) -> None:
    with pytest.raises(EntityCatalogError, match=message):
        parse_catalog(text)


def test_parse_catalog_rejects_unknown_element_type() -> None:
    text = _MINIMAL.replace(
        "  required_columns: [ClientID]",
        "  array_fields:\n    - {field: RequestedTaskIDs, element: date}",
    )

    with pytest.raises(EntityCatalogError, match="element"):
        parse_catalog(text)


def test_range_without_maximum_is_rejected() -> None:
    text = _MINIMAL.replace(
        "  required_columns: [ClientID]",
        "  ranges:\n    - {field: PriorityLevel, min: 1}",
    )

    with pytest.raises(EntityCatalogError, match="max"):
        parse_catalog(text)


def test_load_catalog_reports_missing_file(tmp_path) -> None:
    with pytest.raises(EntityCatalogError, match="unable to read"):
        load_catalog(tmp_path / "absent.yaml")
