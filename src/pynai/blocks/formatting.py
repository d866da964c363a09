"""Text rendering shared by block kinds and progress indicators."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

#: Placeholder written on the spinner row before the first animation tick.
PROCESSING_LINE = "⏳ Processing..."

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def stamped(marker: str, now: datetime | None = None) -> str:
    """``">>> tree"`` -> ``">>> tree [2024-01-01 12:00:00]"``."""
    return f"{marker} [{timestamp(now)}]"


def format_error_block(error_marker: str, target: str | None, message: str) -> list[str]:
    return [error_marker, target or "", "", f"❌ Error: {message}", ""]


def format_completed_header(
    marker: str,
    target: str,
    options: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> list[str]:
    """Stamped marker, the target, options echoed back as comments, blank line."""
    lines = [stamped(marker, now), target]
    for key, value in (options or {}).items():
        if isinstance(value, bool):
            value = "true" if value else "false"
        lines.append(f"-- {key}: {value}")
    lines.append("")
    return lines


def model_short_name(model: str) -> str:
    return model.rsplit("/", 1)[-1]


def render_status_line(frame: str, message: str, elapsed: float, stats: Mapping[str, Any] | None = None) -> str:
    """``"⠹ Fetching x | 3s elapsed | 120 tokens | gemini-2.0-flash"``."""
    stats = stats or {}
    parts = [f"{frame} {message}".rstrip()]
    seconds = int(elapsed)
    if seconds > 0:
        parts.append(f"{seconds}s elapsed")
    tokens = stats.get("tokens") or 0
    if tokens > 0:
        parts.append(f"{tokens} tokens")
    model = stats.get("model")
    if model:
        parts.append(model_short_name(str(model)))
    return " | ".join(parts)


def is_status_line(line: str, frames: tuple[str, ...]) -> bool:
    return line.startswith(PROCESSING_LINE[0]) or any(line.startswith(frame) for frame in frames)
