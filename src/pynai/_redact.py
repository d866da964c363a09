"""Helpers for safe debug logging.

Request payloads can carry provider credentials and whole conversation
transcripts. Credentials are replaced outright; transcripts are reduced to
their shape (roles and sizes) so DEBUG logs never echo what the user wrote.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "<redacted>"

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "api_key",
        "apikey",
        "token",
        "access_token",
        "refresh_token",
        "authorization",
        "password",
        "secret",
        "cookie",
        "credentials",
    }
)

#: Keys holding conversation text.
_TRANSCRIPT_KEYS: frozenset[str] = frozenset({"messages", "prompt", "system_prompt"})

_MAX_DEPTH = 20


def _size_of(text: Any) -> str:
    return f"<{len(text)} chars>" if isinstance(text, str) else f"<{type(text).__name__}>"


def summarize_transcript(value: Any) -> Any:
    """``[{"role": "user", "content": "hi"}]`` -> ``[{"role": "user", "content": "<2 chars>"}]``."""
    if isinstance(value, str):
        return _size_of(value)
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        summary: list[Any] = []
        for message in value:
            if isinstance(message, Mapping):
                summary.append({"role": str(message.get("role", "?")), "content": _size_of(message.get("content"))})
            else:
                summary.append(_size_of(message))
        return summary
    return _size_of(value)


def _clip(text: str, max_string: int) -> str:
    if len(text) <= max_string:
        return text
    return f"{text[:max_string]}…<truncated>"


def redact_for_log(value: Any, *, max_string: int = 200, _depth: int = 0) -> Any:
    """Return a copy of *value* that is safe to put in a debug log."""
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _clip(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<{type(value).__name__}:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for raw_key, item in value.items():
            key = str(raw_key)
            lowered = key.lower()
            if lowered in _SENSITIVE_VALUE_KEYS:
                redacted[key] = REDACTED
            elif lowered in _TRANSCRIPT_KEYS:
                redacted[key] = summarize_transcript(item)
            else:
                redacted[key] = redact_for_log(item, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]

    return repr(value)
