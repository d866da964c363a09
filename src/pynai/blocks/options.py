"""Option and target extraction from block lines.

Options are comment-style lines::

    >>> web
    -- timeout: 10
    -- raw: false
    https://example.com

Values are coerced to a number first, then a boolean, and are otherwise
kept as the stripped string.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Mapping, Sequence
from typing import Any

_OPTION_RE = re.compile(r"^\s*-{2,}\s*(\w+)\s*:\s*(.+)$")


def is_option_line(line: str) -> bool:
    return line.lstrip().startswith("--")


def coerce_value(raw: str) -> int | float | bool | str:
    value = raw.strip()
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        pass
    else:
        # "nan" and "inf" stay strings
        if math.isfinite(number):
            return number
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return value


def parse_options(lines: Sequence[str], defaults: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Return *defaults* overlaid with every ``-- key: value`` line."""
    options: dict[str, Any] = copy.deepcopy(dict(defaults or {}))
    for line in lines:
        if not is_option_line(line):
            continue
        match = _OPTION_RE.match(line)
        if match is None:
            continue
        options[match.group(1)] = coerce_value(match.group(2))
    return options


def extract_target(lines: Sequence[str]) -> str | None:
    """First non-empty, non-option line after the marker line."""
    for line in lines[1:]:
        if line.strip() and not is_option_line(line):
            return line.strip()
    return None
