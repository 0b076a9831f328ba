"""Recover a JSON document from conversational or fenced model output."""

from __future__ import annotations

import re
from typing import Final

_FENCE_OPEN_JSON: Final[re.Pattern[str]] = re.compile(r"^```json\s*", re.MULTILINE)
_FENCE_OPEN: Final[re.Pattern[str]] = re.compile(r"^```\s*", re.MULTILINE)
_FENCE_CLOSE: Final[re.Pattern[str]] = re.compile(r"\s*```$", re.MULTILINE)


def clean_response(raw: str) -> str:
    """Trim wrapper prose and code fences around the outermost ``{...}`` span.

    Text before the first ``{`` and after the last ``}`` is discarded, then any
    remaining fence markers are stripped. Input without braces is only trimmed
    and de-fenced, so the caller's JSON parse reports the real problem.
    """

    text = raw.strip()
    first = text.find("{")
    if first > 0:
        text = text[first:]
    last = text.rfind("}")
    if last != -1:
        text = text[: last + 1]
    text = _FENCE_OPEN_JSON.sub("", text)
    text = _FENCE_OPEN.sub("", text)
    text = _FENCE_CLOSE.sub("", text)
    return text.strip()


__all__ = ["clean_response"]
