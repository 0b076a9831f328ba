"""Command-line interface router for data-steward."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
import time
import uuid
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from data_steward.assist.features import DataAssistant
from data_steward.assist.schemas import UnknownSchemaError, get_schema, schema_names
from data_steward.config import (
    ConfigLoadError,
    ConfigValidationError,
    effective_config,
    load_config,
    provider_settings_from_config,
    retry_policy_from_config,
)
from data_steward.constants import PROVIDER_KINDS
from data_steward.domain.records import DataSnapshot, EntityType
from data_steward.observability.logging import setup_logging
from data_steward.providers.base import ProviderError, ProviderSettings
from data_steward.providers.factory import HealthReport, check_provider_health
from data_steward.service import FEATURES, dispatch_feature
from data_steward.structured.mediator import StructuredOutputError, StructuredOutputMediator
from data_steward.ui.render import CLIRenderer, create_renderer
from data_steward.validation.engine import summarize, validate


@dataclasses.dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="steward",
        description=(
            "data-steward - validate and repair client/worker/task datasets.\n\n"
            "Common workflows:\n"
            "  steward validate clients.json workers.json tasks.json\n"
            "  steward generate search_results --prompt 'tasks longer than 2 phases'\n"
            "  steward health --provider ollama\n"
            "  steward config --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to steward TOML config (default: ./steward.toml if present).",
    )
    common.add_argument("--json", action="store_true", default=False, help="Emit JSON output")
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and debug logs on stderr.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Validate clients, workers and tasks collections",
        description=(
            "Run every validation rule over the three collections.\n"
            "Exits 1 when any error-severity finding exists.\n\n"
            "Examples:\n"
            "  steward validate clients.json workers.json tasks.json\n"
            "  steward validate --payload data.json --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument(
        "files",
        nargs="*",
        metavar="FILE",
        help="CLIENTS.json WORKERS.json TASKS.json (each a JSON list of rows)",
    )
    validate_parser.add_argument(
        "--payload",
        default=None,
        help="Single JSON file with {clients, workers, tasks}",
    )
    validate_parser.set_defaults(handler=_cmd_validate)

    # generate ------------------------------------------------------------
    generate_parser = subparsers.add_parser(
        "generate",
        parents=[common],
        help="Run one structured-output call against the configured provider",
        description=(
            "Send a prompt through the structured-output mediator and print the value.\n\n"
            f"Schemas: {', '.join(schema_names())}\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    generate_parser.add_argument("schema", help="Target schema name")
    prompt_group = generate_parser.add_mutually_exclusive_group(required=True)
    prompt_group.add_argument("--prompt", default=None, help="Prompt text")
    prompt_group.add_argument("--prompt-file", default=None, help="Read prompt text from a file")
    _add_provider_arguments(generate_parser)
    generate_parser.set_defaults(handler=_cmd_generate)

    # assist --------------------------------------------------------------
    assist_parser = subparsers.add_parser(
        "assist",
        parents=[common],
        help="Run an AI-assisted feature over a JSON request file",
        description=(
            "Dispatch one AI-assisted feature; provider failures degrade to its fallback.\n\n"
            f"Features: {', '.join(FEATURES)}\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    assist_parser.add_argument("feature", choices=tuple(FEATURES), help="Feature name")
    assist_parser.add_argument("--request", required=True, help="JSON request body file")
    _add_provider_arguments(assist_parser)
    assist_parser.set_defaults(handler=_cmd_assist)

    # health --------------------------------------------------------------
    health_parser = subparsers.add_parser(
        "health",
        parents=[common],
        help="Check provider reachability",
        description=(
            "Probe the configured provider (or every provider with --all).\n"
            "Exits 3 when a probed provider is unhealthy.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    health_parser.add_argument("--provider", choices=PROVIDER_KINDS, default=None)
    health_parser.add_argument("--all", action="store_true", default=False)
    health_parser.set_defaults(handler=_cmd_health)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
        description=(
            "Display the effective config after merging defaults, file and env.\n"
            "Environment variable names are redacted.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


def _add_provider_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--provider", choices=PROVIDER_KINDS, default=None)
    parser.add_argument("--model", default=None, help="Override the provider model id")


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace) -> int:
    snapshot = _load_snapshot(args)
    errors = validate(snapshot.clients, snapshot.workers, snapshot.tasks)
    summary = summarize(errors)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "validate",
                "errors": [error.to_dict() for error in errors],
                "summary": summary.to_dict(),
            }
        )
    else:
        renderer = _get_renderer(args)
        renderer.heading("steward validate")
        counts = snapshot.counts()
        renderer.kv("Records", ", ".join(f"{name}={count}" for name, count in counts.items()))
        renderer.blank()
        renderer.findings(errors)
        renderer.blank()
        renderer.kv("Errors", summary.error_count)
        renderer.kv("Warnings", summary.warning_count)
    return 1 if summary.blocking else 0


def _cmd_generate(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    _configure_logging(args, config)
    try:
        schema = get_schema(args.schema)
    except UnknownSchemaError as exc:
        raise CLIError(str(exc), exit_code=2) from exc

    prompt = _read_prompt(args)
    settings = _provider_settings(args, config)
    mediator = StructuredOutputMediator(settings, policy=retry_policy_from_config(config))
    try:
        value = asyncio.run(mediator.generate(prompt, schema))
    except (StructuredOutputError, ProviderError) as exc:
        raise CLIError(str(exc), exit_code=3) from exc

    if _flag(args, "json"):
        _emit_json({"command": "generate", "schema": schema.name, "value": value})
    else:
        print(json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def _cmd_assist(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    _configure_logging(args, config)
    request = _read_json_file(Path(args.request), label="request")
    if not isinstance(request, Mapping):
        raise CLIError("request file must contain a JSON object", exit_code=2)

    assistant = DataAssistant(
        _provider_settings(args, config), policy=retry_policy_from_config(config)
    )
    try:
        response = asyncio.run(dispatch_feature(args.feature, request, assistant))
    except (KeyError, ValueError, TypeError) as exc:
        raise CLIError(f"invalid request for {args.feature}: {exc}", exit_code=2) from exc

    if _flag(args, "json"):
        _emit_json({"command": "assist", "feature": args.feature, "response": response})
    else:
        print(json.dumps(response, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


def _cmd_health(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    _configure_logging(args, config)
    if _flag(args, "all"):
        kinds: tuple[str | None, ...] = PROVIDER_KINDS
    else:
        kinds = (args.provider,)

    settings = [_settings_for_kind(config, kind) for kind in kinds]
    reports = asyncio.run(_gather_health(settings))

    if _flag(args, "json"):
        _emit_json({"command": "health", "providers": [report.to_dict() for report in reports]})
    else:
        renderer = _get_renderer(args)
        renderer.heading("steward health")
        for report in reports:
            label = f"{report.kind} ({report.model}): {report.detail}"
            if report.healthy:
                renderer.ok(label)
            else:
                renderer.fail(label)
    return 0 if all(report.healthy for report in reports) else 3


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    redacted = effective_config(config)

    if _flag(args, "json"):
        _emit_json({"command": "config", "config": redacted})
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Default provider", config["providers"]["default"])
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _gather_health(settings: Sequence[ProviderSettings]) -> list[HealthReport]:
    return list(await asyncio.gather(*(check_provider_health(item) for item in settings)))


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=_flag(args, "no_color"), verbose=_flag(args, "verbose"))


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = getattr(args, "config_path", None)
    try:
        return load_config(config_path)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _configure_logging(args: argparse.Namespace, config: Mapping[str, Any]) -> None:
    observability = dict(config["observability"])
    if _flag(args, "verbose"):
        observability["log_level"] = "DEBUG"
        observability["log_to_stderr"] = True
    run_id = f"{time.strftime('%Y%m%dT%H%M%SZ', time.gmtime())}-{uuid.uuid4().hex[:8]}"
    setup_logging(observability, run_id=run_id)


def _provider_settings(args: argparse.Namespace, config: Mapping[str, Any]) -> ProviderSettings:
    settings = _settings_for_kind(config, getattr(args, "provider", None))
    model = getattr(args, "model", None)
    if model:
        settings = dataclasses.replace(settings, model=model)
    return settings


def _settings_for_kind(config: Mapping[str, Any], kind: str | None) -> ProviderSettings:
    try:
        return provider_settings_from_config(config, kind)
    except ValueError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _load_snapshot(args: argparse.Namespace) -> DataSnapshot:
    files: list[str] = list(getattr(args, "files", None) or [])
    payload_path = getattr(args, "payload", None)

    if payload_path is not None:
        if files:
            raise CLIError(
                "use either --payload or three collection files, not both", exit_code=2
            )
        payload = _read_json_file(Path(payload_path), label="payload")
        if not isinstance(payload, Mapping):
            raise CLIError("payload file must contain a JSON object", exit_code=2)
        try:
            return DataSnapshot.from_payload(payload)
        except ValueError as exc:
            raise CLIError(str(exc), exit_code=2) from exc

    if len(files) != 3:
        raise CLIError("validate expects CLIENTS.json WORKERS.json TASKS.json", exit_code=2)

    collections: dict[str, object] = {}
    for entity, raw_path in zip(EntityType, files, strict=True):
        rows = _read_json_file(Path(raw_path), label=entity.value)
        if not isinstance(rows, list):
            raise CLIError(f"{entity.value} file must contain a JSON list", exit_code=2)
        collections[entity.value] = rows
    return DataSnapshot.from_payload(collections)


def _read_prompt(args: argparse.Namespace) -> str:
    if args.prompt is not None:
        return str(args.prompt)
    path = Path(args.prompt_file)
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"unable to read prompt file {path}: {exc}", exit_code=2) from exc


def _read_json_file(path: Path, *, label: str) -> object:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"unable to read {label} file {path}: {exc}", exit_code=2) from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise CLIError(f"invalid JSON in {label} file {path}: {exc}", exit_code=2) from exc


def _flag(args: argparse.Namespace, name: str) -> bool:
    return bool(getattr(args, name, False))


__all__ = ["CLIError", "build_parser", "run_cli"]
