"""Lenient JSON extraction from chat model output.

Models wrap JSON in code fences, prepend prose, or leave trailing commas.
The loaders here try the cleaned text first and then the outermost
bracketed span before giving up with ``JsonPayloadError``.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any
import re

import orjson

_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*\n(?P<body>.*)\n\s*```$", re.DOTALL)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


class JsonPayloadError(ValueError):
    def __init__(self, reason: str, raw_length: int):
        super().__init__(f"{reason} (raw_len={raw_length})")
        self.reason = reason
        self.raw_length = raw_length


def _clean(text: str) -> str:
    stripped = text.strip()
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group("body").strip()
    stripped = stripped.replace("\r\n", "\n").replace("\r", "\n")
    stripped = _CONTROL_CHARS_RE.sub("", stripped)
    return _TRAILING_COMMA_RE.sub(r"\1", stripped)


def _candidates(text: str, opener: str, closer: str) -> Iterator[str]:
    cleaned = _clean(text)
    yield cleaned
    start = cleaned.find(opener)
    end = cleaned.rfind(closer)
    if start != -1 and end > start and (start, end) != (0, len(cleaned) - 1):
        yield cleaned[start : end + 1]


def _decode(text: str, opener: str, closer: str) -> Any:
    if not text or not text.strip():
        raise JsonPayloadError("empty response", 0)
    for candidate in _candidates(text, opener, closer):
        try:
            return orjson.loads(candidate)
        except orjson.JSONDecodeError:
            continue
    raise JsonPayloadError("no decodable JSON found", len(text))


def safe_load_json_dict(text: str) -> dict[str, Any]:
    payload = _decode(text, "{", "}")
    if not isinstance(payload, dict):
        raise JsonPayloadError(f"expected JSON object, got {type(payload).__name__}", len(text))
    return payload


def safe_load_json_list(text: str) -> list[Any]:
    payload = _decode(text, "[", "]")
    if isinstance(payload, dict):
        # {"suggestions": [...]} style wrappers
        wrapped = [value for value in payload.values() if isinstance(value, list)]
        if len(wrapped) == 1:
            return wrapped[0]
    if not isinstance(payload, list):
        raise JsonPayloadError(f"expected JSON array, got {type(payload).__name__}", len(text))
    return payload
