"""Declarative per-entity column catalog loaded from ``entities.yaml``."""

from __future__ import annotations

import functools
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Final, Literal, cast

import yaml

from data_steward.domain.records import EntityType

ElementType = Literal["string", "number"]

_CATALOG_RESOURCE: Final[str] = "entities.yaml"
_ENTITY_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "entity",
        "id_column",
        "required_columns",
        "array_fields",
        "ranges",
        "minimums",
        "attributes_column",
    }
)


class EntityCatalogError(ValueError):
    """Raised when the entity catalog file is malformed."""


@dataclass(frozen=True, slots=True)
class ArrayField:
    field: str
    element: ElementType


@dataclass(frozen=True, slots=True)
class NumericBound:
    field: str
    minimum: float
    maximum: float | None = None


@dataclass(frozen=True, slots=True)
class EntitySchema:
    """Column expectations for one entity collection."""

    entity: EntityType
    id_column: str
    required_columns: tuple[str, ...]
    array_fields: tuple[ArrayField, ...]
    ranges: tuple[NumericBound, ...]
    minimums: tuple[NumericBound, ...]
    attributes_column: str | None


@dataclass(frozen=True, slots=True)
class EntityCatalog:
    schemas: tuple[EntitySchema, ...]

    def get(self, entity: EntityType | str) -> EntitySchema:
        resolved = EntityType(entity)
        for schema in self.schemas:
            if schema.entity is resolved:
                return schema
        raise KeyError(f"entity not in catalog: {resolved.value}")

    def __iter__(self) -> Iterator[EntitySchema]:
        return iter(self.schemas)


@functools.lru_cache(maxsize=1)
def default_catalog() -> EntityCatalog:
    """Return the packaged catalog; parsed once per process."""

    source = resources.files("data_steward.domain").joinpath(_CATALOG_RESOURCE)
    return parse_catalog(source.read_text(encoding="utf-8"), origin=_CATALOG_RESOURCE)


def load_catalog(path: str | Path) -> EntityCatalog:
    catalog_path = Path(path)
    try:
        text = catalog_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise EntityCatalogError(f"unable to read entity catalog {catalog_path}: {exc}") from exc
    return parse_catalog(text, origin=str(catalog_path))


def parse_catalog(text: str, *, origin: str = "<string>") -> EntityCatalog:
    try:
        loaded = cast("object", yaml.safe_load(text))
    except yaml.YAMLError as exc:
        raise EntityCatalogError(f"{origin}: invalid YAML ({exc})") from exc

    if not isinstance(loaded, list):
        raise EntityCatalogError(
            f"{origin}: expected top-level YAML sequence, got {type(loaded).__name__}"
        )

    schemas = tuple(
        _parse_entity(item, location=f"{origin}[{index}]") for index, item in enumerate(loaded)
    )
    seen = [schema.entity for schema in schemas]
    if sorted(seen) != sorted(EntityType) or len(set(seen)) != len(seen):
        raise EntityCatalogError(f"{origin}: catalog must declare each entity exactly once")
    return EntityCatalog(schemas=schemas)


def _parse_entity(payload: object, *, location: str) -> EntitySchema:
    if not isinstance(payload, Mapping):
        raise EntityCatalogError(f"{location}: expected mapping")
    unknown = sorted(set(payload) - _ENTITY_FIELDS)
    if unknown:
        raise EntityCatalogError(f"{location}: unexpected fields {unknown}")

    try:
        entity = EntityType(_str(payload.get("entity"), f"{location}.entity"))
    except ValueError as exc:
        raise EntityCatalogError(f"{location}.entity: {exc}") from exc

    attributes = payload.get("attributes_column")
    return EntitySchema(
        entity=entity,
        id_column=_str(payload.get("id_column"), f"{location}.id_column"),
        required_columns=tuple(
            _str(item, f"{location}.required_columns[{index}]")
            for index, item in enumerate(_seq(payload.get("required_columns"), location))
        ),
        array_fields=tuple(
            _array_field(item, f"{location}.array_fields[{index}]")
            for index, item in enumerate(_seq(payload.get("array_fields"), location))
        ),
        ranges=tuple(
            _bound(item, f"{location}.ranges[{index}]", require_max=True)
            for index, item in enumerate(_seq(payload.get("ranges"), location))
        ),
        minimums=tuple(
            _bound(item, f"{location}.minimums[{index}]", require_max=False)
            for index, item in enumerate(_seq(payload.get("minimums"), location))
        ),
        attributes_column=(
            _str(attributes, f"{location}.attributes_column") if attributes is not None else None
        ),
    )


def _array_field(payload: object, location: str) -> ArrayField:
    if not isinstance(payload, Mapping):
        raise EntityCatalogError(f"{location}: expected mapping")
    element = _str(payload.get("element"), f"{location}.element")
    if element not in ("string", "number"):
        raise EntityCatalogError(f"{location}.element: expected 'string' or 'number'")
    return ArrayField(
        field=_str(payload.get("field"), f"{location}.field"),
        element=cast("ElementType", element),
    )


def _bound(payload: object, location: str, *, require_max: bool) -> NumericBound:
    if not isinstance(payload, Mapping):
        raise EntityCatalogError(f"{location}: expected mapping")
    minimum = _number(payload.get("min"), f"{location}.min")
    raw_max = payload.get("max")
    if raw_max is None:
        if require_max:
            raise EntityCatalogError(f"{location}.max: missing required field")
        maximum = None
    else:
        maximum = _number(raw_max, f"{location}.max")
        if maximum < minimum:
            raise EntityCatalogError(f"{location}: max must be >= min")
    return NumericBound(
        field=_str(payload.get("field"), f"{location}.field"),
        minimum=minimum,
        maximum=maximum,
    )


def _seq(value: object, location: str) -> Sequence[object]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise EntityCatalogError(f"{location}: expected list")
    return value


def _str(value: object, location: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise EntityCatalogError(f"{location}: expected non-empty string")
    return value.strip()


def _number(value: object, location: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EntityCatalogError(f"{location}: expected number")
    return float(value)


__all__ = [
    "ArrayField",
    "EntityCatalog",
    "EntityCatalogError",
    "EntitySchema",
    "NumericBound",
    "default_catalog",
    "load_catalog",
    "parse_catalog",
]
