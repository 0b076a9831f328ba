"""Unit tests for model-output cleaning."""

from __future__ import annotations

import json
import string

import pytest
from hypothesis import given
from hypothesis import strategies as st

from data_steward.structured.cleaning import clean_response

_PROSE = st.text(alphabet=string.ascii_letters + " .:\n", max_size=30)
_OBJECTS = st.dictionaries(
    st.text(alphabet=string.ascii_letters, min_size=1, max_size=6),
    st.one_of(st.none(), st.booleans(), st.integers(), st.text(max_size=12)),
    max_size=5,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('```json\n{"a": 1}\n```', '{"a": 1}'),
        ('```\n{"a": 1}\n```', '{"a": 1}'),
        ('Here is the JSON you asked for: {"a": 1} Hope this helps!', '{"a": 1}'),
        ('  {"a": {"b": [1, 2]}}  ', '{"a": {"b": [1, 2]}}'),
        ("no json here", "no json here"),
        ("```json\n[1, 2]\n```", "[1, 2]"),
    ],
)
def test_clean_response_examples(raw: str, expected: str) -> None:
    assert clean_response(raw) == expected


@given(prefix=_PROSE, suffix=_PROSE, payload=_OBJECTS, fenced=st.booleans())
def test_clean_response_recovers_wrapped_objects(
    prefix: str, suffix: str, payload: dict[str, object], fenced: bool
) -> None:
    body = json.dumps(payload)
    if fenced:
        body = f"```json\n{body}\n```"
    raw = f"{prefix}{body}{suffix}"

    cleaned = clean_response(raw)

    assert json.loads(cleaned) == payload
    assert clean_response(cleaned) == cleaned
