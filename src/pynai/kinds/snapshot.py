"""``>>> snapshot`` blocks: file contents pasted into the document.

::

    >>> snapshot
    src/app.py
    src/**/*.toml

    Notes after the first blank line are kept below the files.
"""

from __future__ import annotations

import glob
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pynai.blocks.formatting import format_error_block, stamped
from pynai.blocks.kinds import SyncBlockKind
from pynai.blocks.models import BlockMarkers
from pynai.blocks.options import is_option_line
from pynai.kinds.tree import expand_path

_logger = logging.getLogger(__name__)

FENCE_LANGUAGES: dict[str, str] = {
    "lua": "lua",
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "html": "html",
    "css": "css",
    "json": "json",
    "md": "markdown",
    "rb": "ruby",
    "go": "go",
    "rs": "rust",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "hpp": "cpp",
    "sh": "bash",
    "toml": "toml",
    "yaml": "yaml",
    "yml": "yaml",
}


def fence_language(path: Path) -> str:
    return FENCE_LANGUAGES.get(path.suffix.lstrip(".").lower(), "")


def expand_pattern(pattern: str) -> list[Path]:
    """Files matched by *pattern*, or the path itself when it has no wildcards."""
    expanded = expand_path(pattern)
    if any(char in str(expanded) for char in "*?["):
        return [Path(match) for match in sorted(glob.glob(str(expanded), recursive=True)) if Path(match).is_file()]
    return [expanded]


def split_snapshot_lines(lines: list[str]) -> tuple[list[str], list[str]]:
    """``(paths, trailing_text)`` of a block, marker line excluded."""
    paths: list[str] = []
    trailing: list[str] = []
    in_paths = True
    for line in lines[1:]:
        if in_paths and not line.strip():
            in_paths = False
        elif in_paths:
            if not is_option_line(line):
                paths.append(line.strip())
        else:
            trailing.append(line)
    return paths, trailing


class SnapshotKind(SyncBlockKind):
    name = "snapshot"
    markers = BlockMarkers(
        request=">>> snapshot",
        progress=">>> snapshotting",
        completed=">>> snapshotted",
        error=">>> snapshot-error",
    )
    missing_target_message = "No file paths provided"
    use_spinner = False

    def completed_line(self, target: str | None, options: Mapping[str, Any]) -> str:
        return stamped(self.markers.completed)

    def format_error(self, target: str | None, message: str) -> list[str]:
        return format_error_block(self.markers.error, target, message)

    def execute(self, lines: list[str], options: dict[str, Any]) -> list[str]:
        patterns, trailing = split_snapshot_lines(lines)
        body = [*patterns, ""]
        for pattern in patterns:
            matches = expand_pattern(pattern)
            if not matches:
                body.extend([f"❌ No files match: {pattern}", ""])
                continue
            for path in matches:
                body.extend(self._render_file(path))
        body.extend(trailing)
        return body

    def _render_file(self, path: Path) -> list[str]:
        header = f"==> {path} <=="
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            _logger.debug("Cannot read %s: %s", path, exc)
            return [header, f"❌ Cannot read file: {exc.strerror or exc}", ""]
        return [header, f"```{fence_language(path)}", *content.split("\n"), "```", ""]
