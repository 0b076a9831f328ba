"""
data-steward - prompt template loading and rendering

File: src/data_steward/assist/prompts.py
Last updated: 2026-10-18

Purpose
- Loads and renders feature prompt templates from ``assist/templates/`` with strict placeholders.

What should be included in this file
- Template rendering rules and allowed variables.
- Prompt versioning and hashing (so log lines can identify a prompt without carrying it).

Functional requirements
- Must render prompts deterministically for same inputs.
- Missing, unexpected or non-whitelisted variables are hard errors.

Non-functional requirements
- Templates never receive raw objects; every value is serialized to text first.
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, StrictUndefined, meta

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping


_TEMPLATE_NAME_RE = re.compile(r"^[A-Za-z0-9_]+(?:\.md)?$")
_LAST_UPDATED_RE = re.compile(r"(?im)Last updated:\s*([0-9][0-9-]*)")


class PromptTemplateError(RuntimeError):
    """Base error for prompt template loading and rendering."""


class PromptTemplateNotFoundError(PromptTemplateError, FileNotFoundError):
    """Raised when a template file does not exist."""


class PromptTemplateVariableError(PromptTemplateError, ValueError):
    """Raised for missing/extra variables or whitelist violations."""


@dataclass(frozen=True, slots=True)
class PromptTemplateMetadata:
    template_name: str
    template_version: str
    template_hash: str
    declared_variables: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class RenderedPrompt:
    """Rendered prompt plus deterministic hashes for log correlation."""

    prompt: str
    prompt_hash: str
    template_metadata: PromptTemplateMetadata


class PromptTemplateEngine:
    """Deterministic feature prompt loader + renderer."""

    def __init__(self, *, template_root: Path | str | None = None) -> None:
        root = Path(template_root) if template_root is not None else _default_template_root()
        resolved_root = root.resolve()
        if not resolved_root.exists():
            raise PromptTemplateNotFoundError(f"template root does not exist: {resolved_root}")
        if not resolved_root.is_dir():
            raise NotADirectoryError(f"template root is not a directory: {resolved_root}")

        self._template_root = resolved_root
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=False,
            lstrip_blocks=False,
            newline_sequence="\n",
            keep_trailing_newline=True,
        )

    @property
    def template_root(self) -> Path:
        return self._template_root

    def render(
        self,
        name: str,
        *,
        variables: Mapping[str, object],
        allowed_variables: Collection[str],
    ) -> RenderedPrompt:
        """Render one template with strict variable/whitelist checks."""

        template_name = _normalize_template_name(name)
        template_path = self._resolve_template_path(template_name)
        template_source = _normalize_newlines(template_path.read_text(encoding="utf-8"))

        template = self._environment.from_string(template_source)
        declared_variables = tuple(
            sorted(meta.find_undeclared_variables(self._environment.parse(template_source)))
        )

        allowed_set = set(_normalize_variable_names(allowed_variables))

        unexpected_in_template = sorted(set(declared_variables) - allowed_set)
        if unexpected_in_template:
            raise PromptTemplateVariableError(
                "template uses variables not allowed by whitelist: "
                + ", ".join(unexpected_in_template)
            )

        variable_payload = _normalize_variable_mapping(variables)
        unexpected_inputs = sorted(set(variable_payload) - allowed_set)
        if unexpected_inputs:
            raise PromptTemplateVariableError(
                "unexpected variables were provided: " + ", ".join(unexpected_inputs)
            )

        missing_required = sorted(set(declared_variables) - set(variable_payload))
        if missing_required:
            raise PromptTemplateVariableError(
                "missing required template variables: " + ", ".join(missing_required)
            )

        rendered_values = {
            key: _normalize_newlines(_serialize_variable_value(variable_payload[key]))
            for key in sorted(variable_payload)
        }
        rendered_prompt = _normalize_newlines(template.render(**rendered_values)).strip()

        metadata = PromptTemplateMetadata(
            template_name=template_name,
            template_version=_extract_template_version(template_source),
            template_hash=sha256_text(template_source),
            declared_variables=declared_variables,
        )
        return RenderedPrompt(
            prompt=rendered_prompt,
            prompt_hash=sha256_text(rendered_prompt),
            template_metadata=metadata,
        )

    def _resolve_template_path(self, template_name: str) -> Path:
        candidate = (self._template_root / template_name).resolve()
        try:
            candidate.relative_to(self._template_root)
        except ValueError as exc:
            raise PromptTemplateError(
                f"template path escapes template root: {template_name!r}"
            ) from exc

        if not candidate.is_file():
            raise PromptTemplateNotFoundError(
                f"template not found: {template_name!r} under {self._template_root}"
            )
        return candidate


def render_prompt_template(
    name: str,
    *,
    variables: Mapping[str, object],
    allowed_variables: Collection[str] | None = None,
    template_root: Path | str | None = None,
) -> RenderedPrompt:
    """Convenience one-shot renderer; the whitelist defaults to the given variable names."""

    engine = PromptTemplateEngine(template_root=template_root)
    allowed = allowed_variables if allowed_variables is not None else tuple(variables)
    return engine.render(name, variables=variables, allowed_variables=allowed)


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def to_prompt_json(value: object) -> str:
    """Pretty JSON used for samples embedded in prompts."""

    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _default_template_root() -> Path:
    return Path(__file__).resolve().parent / "templates"


def _normalize_template_name(name: str) -> str:
    if not isinstance(name, str):
        raise TypeError("template name must be a string")

    cleaned = name.strip()
    if not cleaned:
        raise ValueError("template name must not be empty")
    if not _TEMPLATE_NAME_RE.fullmatch(cleaned):
        raise ValueError(f"invalid template name: {name!r}")

    stem = cleaned[:-3] if cleaned.lower().endswith(".md") else cleaned
    return f"{stem.upper()}.md"


def _normalize_variable_mapping(variables: Mapping[str, object]) -> dict[str, object]:
    normalized: dict[str, object] = {}
    for key, value in variables.items():
        if not isinstance(key, str):
            raise TypeError("variable names must be strings")
        cleaned = key.strip()
        if not cleaned:
            raise ValueError("variable names must not be empty")
        normalized[cleaned] = value
    return normalized


def _normalize_variable_names(names: Collection[str]) -> tuple[str, ...]:
    normalized: set[str] = set()
    for item in names:
        if not isinstance(item, str):
            raise TypeError("allowed_variables entries must be strings")
        cleaned = item.strip()
        if not cleaned:
            raise ValueError("allowed_variables entries must not be empty")
        normalized.add(cleaned)
    return tuple(sorted(normalized))


def _serialize_variable_value(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8")
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    except TypeError:
        return str(value)


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _extract_template_version(template_source: str) -> str:
    match = _LAST_UPDATED_RE.search(template_source)
    if match is None:
        return "unversioned"
    return match.group(1).strip()


__all__ = [
    "PromptTemplateEngine",
    "PromptTemplateError",
    "PromptTemplateMetadata",
    "PromptTemplateNotFoundError",
    "PromptTemplateVariableError",
    "RenderedPrompt",
    "render_prompt_template",
    "sha256_text",
    "to_prompt_json",
]
