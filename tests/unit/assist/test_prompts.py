"""Unit tests for feature prompt templates."""

from __future__ import annotations

from pathlib import Path

import pytest

from data_steward.assist.prompts import (
    PromptTemplateEngine,
    PromptTemplateError,
    PromptTemplateNotFoundError,
    PromptTemplateVariableError,
    render_prompt_template,
    sha256_text,
)

_SEARCH_VARIABLES = {
    "query": "workers with python skills",
    "clients_count": 1,
    "workers_count": 2,
    "tasks_count": 0,
    "clients_sample": "[]",
    "workers_sample": '[{"WorkerID": "W1"}]',
    "tasks_sample": "[]",
}


def _write_template(root: Path, name: str, text: str) -> None:
    root.mkdir(parents=True, exist_ok=True)
    (root / name).write_text(text, encoding="utf-8")


def test_packaged_search_template_renders_with_hash_and_version() -> None:
    rendered = render_prompt_template("search", variables=_SEARCH_VARIABLES)

    assert "workers with python skills" in rendered.prompt
    assert '[{"WorkerID": "W1"}]' in rendered.prompt
    assert rendered.prompt == rendered.prompt.strip()
    assert rendered.prompt_hash == sha256_text(rendered.prompt)
    assert rendered.template_metadata.template_name == "SEARCH.md"
    assert rendered.template_metadata.template_version == "2026-10-18"
    assert "query" in rendered.template_metadata.declared_variables


@pytest.mark.parametrize(
    "name",
    ["column_mapping", "search", "rule_creation", "rule_suggestions", "corrections",
     "modifications"],
)
def test_every_feature_template_is_packaged(name: str) -> None:
    root = PromptTemplateEngine().template_root

    assert (root / f"{name.upper()}.md").is_file()


def test_rendering_is_deterministic() -> None:
    first = render_prompt_template("search", variables=_SEARCH_VARIABLES)
    second = render_prompt_template("search", variables=dict(reversed(_SEARCH_VARIABLES.items())))

    assert first == second


def test_missing_variables_are_rejected() -> None:
    variables = dict(_SEARCH_VARIABLES)
    del variables["query"]

    with pytest.raises(PromptTemplateVariableError, match="not allowed by whitelist: query"):
        render_prompt_template("search", variables=variables)
    with pytest.raises(PromptTemplateVariableError, match="missing required template variables"):
        render_prompt_template(
            "search", variables=variables, allowed_variables=tuple(_SEARCH_VARIABLES)
        )


def test_unexpected_variables_are_rejected() -> None:
    variables = dict(_SEARCH_VARIABLES, secret="x")

    with pytest.raises(PromptTemplateVariableError, match="unexpected variables"):
        render_prompt_template(
            "search", variables=variables, allowed_variables=tuple(_SEARCH_VARIABLES)
        )


def test_non_string_values_are_serialized_as_compact_json(tmp_path: Path) -> None:
    _write_template(tmp_path, "DEMO.md", "Rows: {{ rows }}\n")
    engine = PromptTemplateEngine(template_root=tmp_path)

    rendered = engine.render(
        "demo", variables={"rows": {"b": 1, "a": [1, 2]}}, allowed_variables=("rows",)
    )

    assert rendered.prompt == 'Rows: {"a":[1,2],"b":1}'
    assert rendered.template_metadata.template_version == "unversioned"


def test_unknown_and_invalid_template_names(tmp_path: Path) -> None:
    engine = PromptTemplateEngine(template_root=tmp_path)

    with pytest.raises(PromptTemplateNotFoundError):
        engine.render("absent", variables={}, allowed_variables=())
    with pytest.raises(ValueError, match="invalid template name"):
        engine.render("../escape", variables={}, allowed_variables=())
    with pytest.raises(PromptTemplateError):
        PromptTemplateEngine(template_root=tmp_path / "missing")
