"""Structured logging setup with JSON-lines output, structlog routing and redaction."""

from __future__ import annotations

import json
import logging
import math
import re
import sys
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

_REDACTED_VALUE: Final[str] = "***REDACTED***"
_DEFAULT_LOG_FILENAME: Final[str] = "steward.jsonl"
_DEFAULT_LOGGER_NAME: Final[str] = "data_steward"
_PREVIEW_CHARS: Final[int] = 200

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "private_key",
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_OPENAI_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-[A-Za-z0-9_-]{12,}\b")
_GOOGLE_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bAIza[0-9A-Za-z_-]{20,}\b")

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
        "run_id",
    }
)

_STRUCTLOG_LOCK = threading.Lock()
_ACTIVE_HANDLERS: list[logging.Handler] = []


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for one logging setup."""

    run_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = _DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    log_format: str = "json"
    log_filename: str = _DEFAULT_LOG_FILENAME
    log_to_file: bool = True
    log_to_stderr: bool = False
    redact_secrets: bool = True


@dataclass(frozen=True, slots=True)
class LoggingHandle:
    logger: logging.Logger
    run_id: str
    log_path: Path | None
    handlers: tuple[logging.Handler, ...]


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits canonical JSON objects per log line."""

    def __init__(self, *, redactor: LogRedactor, run_id: str) -> None:
        super().__init__()
        self._redactor = redactor
        self._run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": _coerce_log_message(
                self._redactor(_normalize_json_value(record.getMessage()))
            ),
            "run_id": self._run_id,
        }

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = self._redactor(_normalize_json_value(extras))

        if record.exc_info is not None:
            event["exception"] = _coerce_log_message(
                self._redactor(_normalize_json_value(self.formatException(record.exc_info)))
            )
        if record.stack_info:
            event["stack"] = _coerce_log_message(
                self._redactor(_normalize_json_value(str(record.stack_info)))
            )

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class _TextFormatter(logging.Formatter):
    """Human-readable single-line formatter; extra fields rendered as key=value."""

    def __init__(self, *, redactor: LogRedactor) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)s %(name)s %(message)s")
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extract_extra_fields(record)
        if extras:
            redacted = self._redactor(_normalize_json_value(extras))
            if isinstance(redacted, dict):
                rendered = " ".join(
                    f"{key}={json.dumps(value, ensure_ascii=False)}"
                    for key, value in sorted(redacted.items())
                )
                line = f"{line} {rendered}"
        return _redact_string(line) if line else line


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    logger_name: str = _DEFAULT_LOGGER_NAME,
) -> logging.Logger:
    """Configure logging from an ``[observability]`` config section and return the logger.

    Parameters
    ----------
    observability_config:
        Mapping compatible with ``[observability]`` settings in ``steward.toml``.
    run_id:
        Correlation identifier used for the per-run log directory and every record.
    log_dir:
        Optional override for the base log directory.
    logger_name:
        Logger name to configure.
    """

    cfg = dict(observability_config or {})
    raw_level = cfg.get("log_level", "INFO")
    level: int | str = raw_level if isinstance(raw_level, (int, str)) else "INFO"
    raw_base_log_dir: object = log_dir if log_dir is not None else cfg.get("log_dir", "logs")
    base_log_dir: Path | str = (
        raw_base_log_dir if isinstance(raw_base_log_dir, (Path, str)) else "logs"
    )
    raw_format = cfg.get("log_format", "json")

    handle = setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=base_log_dir,
            logger_name=logger_name,
            level=level,
            log_format=raw_format if isinstance(raw_format, str) else "json",
            log_to_stderr=bool(cfg.get("log_to_stderr", False)),
            redact_secrets=bool(cfg.get("redact_secrets", True)),
        )
    )
    return handle.logger


def setup_structured_logging(config: LoggingConfig) -> LoggingHandle:
    """Attach file/stderr sinks to the package logger and route structlog through it."""

    shutdown_logging()

    run_id = _validate_non_empty(config.run_id, "run_id")
    logger_name = _validate_non_empty(config.logger_name, "logger_name")
    log_filename = _validate_log_filename(config.log_filename)
    level = _parse_log_level(config.level)
    if config.log_format not in ("json", "text"):
        raise ValueError(f"unsupported log_format {config.log_format!r}")

    redactor = default_log_redactor if config.redact_secrets else _identity_redactor
    formatter: logging.Formatter
    if config.log_format == "json":
        formatter = _JsonLineFormatter(redactor=redactor, run_id=run_id)
    else:
        formatter = _TextFormatter(redactor=redactor)

    handlers: list[logging.Handler] = []
    log_path: Path | None = None
    if config.log_to_file:
        run_log_dir = Path(config.base_log_dir) / run_id
        run_log_dir.mkdir(parents=True, exist_ok=True)
        log_path = run_log_dir / log_filename
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    if config.log_to_stderr:
        handlers.append(logging.StreamHandler(sys.stderr))

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    with _STRUCTLOG_LOCK:
        _ACTIVE_HANDLERS.extend(handlers)
    configure_structlog(force=True)

    return LoggingHandle(logger=logger, run_id=run_id, log_path=log_path, handlers=tuple(handlers))


def shutdown_logging() -> None:
    """Flush and detach every sink attached by ``setup_structured_logging``."""

    with _STRUCTLOG_LOCK:
        handlers = list(_ACTIVE_HANDLERS)
        _ACTIVE_HANDLERS.clear()
    for handler in handlers:
        for logger in _loggers_with(handler):
            logger.removeHandler(handler)
        handler.flush()
        handler.close()


def configure_structlog(*, force: bool = False) -> None:
    """Route structlog events into stdlib logging so both share handlers."""

    with _STRUCTLOG_LOCK:
        if structlog.is_configured() and not force:
            return
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.processors.StackInfoRenderer(),
                structlog.stdlib.render_to_log_kwargs,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=False,
        )


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to ``name`` with stdlib routing in place."""

    configure_structlog()
    return structlog.get_logger(name)


def preview_text(text: str, *, limit: int = _PREVIEW_CHARS) -> str:
    """Short redacted preview of prompts/responses for debug logs."""

    collapsed = " ".join(text.split())
    if len(collapsed) > limit:
        collapsed = collapsed[:limit] + "..."
    return _redact_string(collapsed)


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Default deep redaction for secrets."""

    return _redact_value(value, key_context=None)


def _loggers_with(handler: logging.Handler) -> list[logging.Logger]:
    found: list[logging.Logger] = []
    for candidate in logging.Logger.manager.loggerDict.values():
        if isinstance(candidate, logging.Logger) and handler in candidate.handlers:
            found.append(candidate)
    return found


def _validate_non_empty(value: str, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{name} must not be empty")
    return normalized


def _validate_log_filename(log_filename: str) -> str:
    normalized = _validate_non_empty(log_filename, "log_filename")
    if Path(normalized).name != normalized:
        raise ValueError("log_filename must not include path separators")
    return normalized


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_log_message(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if math.isfinite(value):
            return value
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            normalized = value.replace(tzinfo=UTC)
        else:
            normalized = value.astimezone(UTC)
        return normalized.isoformat(timespec="microseconds").replace("+00:00", "Z")
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        normalized_items = [_normalize_json_value(item) for item in value]
        return sorted(
            normalized_items,
            key=lambda item: json.dumps(
                item, sort_keys=True, separators=(",", ":"), ensure_ascii=False
            ),
        )
    return repr(value)


def _identity_redactor(value: JSONValue) -> JSONValue:
    return value


def _redact_value(value: JSONValue, *, key_context: str | None) -> JSONValue:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE

    if isinstance(value, str):
        return _redact_string(value)

    if isinstance(value, list):
        return [_redact_value(item, key_context=None) for item in value]

    if isinstance(value, dict):
        return {key: _redact_value(item, key_context=key) for key, item in value.items()}

    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    if key_lower.endswith("_env"):
        return False
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS)


def _redact_string(text: str) -> str:
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", text
    )
    redacted = _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", redacted)
    redacted = _OPENAI_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)
    redacted = _GOOGLE_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)
    return redacted


__all__ = [
    "JSONScalar",
    "JSONValue",
    "LogRedactor",
    "LoggingConfig",
    "LoggingHandle",
    "configure_structlog",
    "default_log_redactor",
    "get_logger",
    "preview_text",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
