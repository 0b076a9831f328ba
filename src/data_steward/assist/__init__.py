"""AI-assisted features built on the structured-output mediator."""

from data_steward.assist.apply import ApplyResult, apply_corrections, apply_modifications
from data_steward.assist.features import (
    RULE_CREATION_FAILED,
    SEARCH_FAILED_EXPLANATION,
    DataAssistant,
)
from data_steward.assist.ingest import coerce_cell, coerce_row, coerce_rows, parse_range
from data_steward.assist.models import ParseResult, RuleCreationResult, RuleProposal, SearchResult
from data_steward.assist.prompts import (
    PromptTemplateEngine,
    PromptTemplateError,
    PromptTemplateNotFoundError,
    PromptTemplateVariableError,
    RenderedPrompt,
    render_prompt_template,
)
from data_steward.assist.schemas import (
    RULE_TYPES,
    SCHEMAS,
    UnknownSchemaError,
    get_schema,
    schema_names,
)

__all__ = [
    "ApplyResult",
    "DataAssistant",
    "ParseResult",
    "PromptTemplateEngine",
    "PromptTemplateError",
    "PromptTemplateNotFoundError",
    "PromptTemplateVariableError",
    "RULE_CREATION_FAILED",
    "RULE_TYPES",
    "RenderedPrompt",
    "RuleCreationResult",
    "RuleProposal",
    "SCHEMAS",
    "SEARCH_FAILED_EXPLANATION",
    "SearchResult",
    "UnknownSchemaError",
    "apply_corrections",
    "apply_modifications",
    "coerce_cell",
    "coerce_row",
    "coerce_rows",
    "get_schema",
    "parse_range",
    "render_prompt_template",
    "schema_names",
]
