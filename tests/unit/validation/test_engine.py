"""Unit tests for the validation engine."""

from __future__ import annotations

import copy
import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from data_steward.domain.records import ErrorKind
from data_steward.validation.engine import (
    ValidationEngine,
    has_blocking_errors,
    summarize,
    validate,
)
from data_steward.validation.rules import RuleSpec, check_unique_ids

CLIENTS = [
    {
        "ClientID": "C1",
        "ClientName": "Acme",
        "PriorityLevel": 3,
        "RequestedTaskIDs": ["T1", "T99"],
        "AttributesJSON": "{}",
    }
]
WORKERS = [
    {
        "WorkerID": "W1",
        "WorkerName": "Ann",
        "Skills": ["python"],
        "AvailableSlots": [1, 2],
        "MaxLoadPerPhase": 4,
    }
]
TASKS = [
    {
        "TaskID": "T1",
        "TaskName": "Build",
        "Duration": 2,
        "RequiredSkills": ["python"],
        "PreferredPhases": [1, 2],
        "MaxConcurrent": 1,
    }
]


@pytest.mark.unit
def test_empty_input_produces_no_findings() -> None:
    assert validate([], [], []) == []


@pytest.mark.unit
def test_clean_rows_produce_no_findings() -> None:
    clients = [dict(CLIENTS[0], RequestedTaskIDs=["T1"])]
    workers = [dict(WORKERS[0], MaxLoadPerPhase=2)]

    assert validate(clients, workers, TASKS) == []


@pytest.mark.unit
def test_findings_are_grouped_in_rule_order() -> None:
    errors = validate(CLIENTS, WORKERS, TASKS)

    assert [error.kind for error in errors] == [
        ErrorKind.UNKNOWN_REFERENCE,
        ErrorKind.OVERLOADED_WORKER,
    ]
    assert errors[0].column_name == "RequestedTaskIDs"


@pytest.mark.unit
def test_non_object_rows_are_reported_with_their_index() -> None:
    clients = [dict(CLIENTS[0], RequestedTaskIDs=["T1"]), "garbage row", None]

    errors = validate(clients, [], [])

    assert [(error.kind, error.row_index) for error in errors] == [
        (ErrorKind.MISSING_COLUMNS, 1),
        (ErrorKind.MISSING_COLUMNS, 2),
    ]
    assert has_blocking_errors(errors) is True


@pytest.mark.unit
def test_infinite_duration_is_flagged() -> None:
    tasks = [dict(TASKS[0], Duration="inf")]

    errors = validate([], [], tasks)

    assert [(error.kind, error.column_name) for error in errors] == [
        (ErrorKind.BELOW_MINIMUM, "Duration")
    ]


@pytest.mark.unit
def test_validation_is_pure_and_repeatable() -> None:
    clients = copy.deepcopy(CLIENTS)

    first = validate(clients, WORKERS, TASKS)
    second = validate(clients, WORKERS, TASKS)

    assert first == second
    assert clients == CLIENTS


@pytest.mark.unit
def test_crashing_rule_is_skipped_and_others_still_run() -> None:
    def _explode(data: object) -> list[object]:
        raise RuntimeError("boom")

    engine = ValidationEngine(
        [
            RuleSpec(rule_id="explode", description="", check=_explode),  # type: ignore[arg-type]
            RuleSpec(rule_id="unique_ids", description="", check=check_unique_ids),
        ]
    )

    errors = engine.validate(clients=[{"ClientID": "C1"}, {"ClientID": "C1"}])

    assert [error.kind for error in errors] == [ErrorKind.DUPLICATE_ID]


@pytest.mark.unit
def test_summary_counts_errors_and_warnings() -> None:
    errors = validate(CLIENTS, WORKERS, TASKS)

    summary = summarize(errors)

    assert summary.error_count == 1
    assert summary.warning_count == 1
    assert summary.blocking is True
    assert summary.to_dict() == {
        "errors": 1,
        "warnings": 1,
        "byKind": {"OverloadedWorker": 1, "UnknownReference": 1},
    }
    assert has_blocking_errors(errors) is True
    assert has_blocking_errors(errors[1:]) is False


_CELLS = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-3, max_value=8),
    st.floats(allow_nan=False, allow_infinity=False),
    st.text(max_size=6),
    st.lists(st.one_of(st.integers(min_value=0, max_value=5), st.text(max_size=3)), max_size=3),
)


def _rows(columns: list[str]) -> st.SearchStrategy[list[dict[str, object]]]:
    return st.lists(st.dictionaries(st.sampled_from(columns), _CELLS), max_size=4)


@pytest.mark.unit
@settings(max_examples=60, deadline=None)
@given(
    clients=_rows(["ClientID", "ClientName", "PriorityLevel", "RequestedTaskIDs", "GroupTag"]),
    workers=_rows(["WorkerID", "WorkerName", "Skills", "AvailableSlots", "MaxLoadPerPhase"]),
    tasks=_rows(["TaskID", "TaskName", "Duration", "RequiredSkills", "PreferredPhases"]),
)
def test_loose_rows_never_raise_and_results_are_identical(
    clients: list[dict[str, object]],
    workers: list[dict[str, object]],
    tasks: list[dict[str, object]],
) -> None:
    before = copy.deepcopy((clients, workers, tasks))

    first = [error.to_dict() for error in validate(clients, workers, tasks)]
    second = [error.to_dict() for error in validate(clients, workers, tasks)]

    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)
    assert (clients, workers, tasks) == before
    if not clients and not workers and not tasks:
        assert first == []
