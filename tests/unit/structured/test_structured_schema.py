"""Unit tests for declarative structured-output schemas."""

from __future__ import annotations

import pytest

from data_steward.structured.schema import (
    FieldSpec,
    StructuredSchema,
    any_value,
    array_of,
    boolean,
    enum_of,
    integer,
    map_of,
    number,
    object_of,
    optional,
    string,
)

_SCHEMA = StructuredSchema(
    name="sample",
    root=object_of(
        {
            "title": string(),
            "tags": array_of(string()),
            "score": number(minimum=0, maximum=1),
            "count": integer(),
            "kind": enum_of("a", "b"),
            "config": any_value(),
            "labels": optional(map_of(string())),
            "done": optional(boolean()),
        }
    ),
)


def _valid() -> dict[str, object]:
    return {
        "title": "t",
        "tags": ["x"],
        "score": 0.5,
        "count": 2.0,
        "kind": "a",
        "config": {"n": 1},
    }


def test_example_follows_field_kinds() -> None:
    assert _SCHEMA.example() == {
        "title": "example_string",
        "tags": ["string1", "string2"],
        "score": 0.5,
        "count": 123,
        "kind": "a",
        "config": "any_value",
        "labels": {"key1": "value1", "key2": "value2"},
        "done": True,
    }


def test_example_is_a_fresh_copy() -> None:
    first = _SCHEMA.example()
    first["tags"].append("mutated")

    assert _SCHEMA.example()["tags"] == ["string1", "string2"]


def test_conforming_value_drops_unknown_keys_and_normalizes_integers() -> None:
    payload = _valid() | {"extra": "ignored", "done": None}

    result = _SCHEMA.check(payload)

    assert result.ok
    assert result.value["count"] == 2
    assert isinstance(result.value["count"], int)
    assert "extra" not in result.value
    assert "done" not in result.value


def test_missing_any_field_is_accepted() -> None:
    payload = _valid()
    del payload["config"]

    assert _SCHEMA.check(payload).ok


def test_issues_are_path_addressed() -> None:
    payload = _valid() | {"tags": ["x", 3], "score": 2, "kind": "c"}
    del payload["title"]

    result = _SCHEMA.check(payload)

    assert not result.ok
    assert [str(issue) for issue in result.issues] == [
        "$.title: required field missing",
        "$.tags[1]: expected string, got number",
        "$.score: must be <= 1",
        "$.kind: expected one of [a, b], got 'c'",
    ]


def test_root_must_be_object() -> None:
    with pytest.raises(ValueError, match="root must be an object"):
        StructuredSchema(name="bad", root=string())
    assert StructuredSchema(name="ok", root=object_of({})).check([]).ok is False


def test_field_spec_invariants() -> None:
    with pytest.raises(ValueError, match="element"):
        FieldSpec("array")  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="choice"):
        enum_of()
    with pytest.raises(ValueError, match="unique"):
        object_of([("a", string()), ("a", number())])
