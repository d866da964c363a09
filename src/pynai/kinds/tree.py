"""``>>> tree`` blocks: directory listings from the ``tree`` utility.

::

    >>> tree
    ~/src/project
    -- -L 2 --dirsfirst

Every non-option line is a directory; ``--`` lines are passed to the
command as flags.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pynai.blocks.formatting import format_error_block, stamped
from pynai.blocks.kinds import SyncBlockKind
from pynai.blocks.models import BlockMarkers
from pynai.blocks.processor import BlockProcessor
from pynai.exceptions import BlockOperationError

_logger = logging.getLogger(__name__)


def expand_path(raw: str) -> Path:
    return Path(os.path.expandvars(raw)).expanduser()


def _is_flag_line(line: str) -> bool:
    return line.lstrip().startswith("--")


def _flag_text(line: str) -> str:
    """``"-- -L 2"`` -> ``"-L 2"``; ``"--dirsfirst"`` is already a flag and kept whole."""
    stripped = line.strip()
    rest = stripped[2:]
    if not rest or rest[0].isspace():
        return rest.strip()
    return stripped


def split_tree_lines(lines: Sequence[str]) -> tuple[list[str], str]:
    """``(directories, flags)`` of a block, marker line excluded."""
    directories: list[str] = []
    flags: list[str] = []
    for line in lines[1:]:
        if _is_flag_line(line):
            flag = _flag_text(line)
            if flag:
                flags.append(flag)
        elif line.strip():
            directories.append(line.strip())
    return directories, " ".join(flags)


class TreeKind(SyncBlockKind):
    name = "tree"
    markers = BlockMarkers(
        request=">>> tree",
        progress=">>> generating-tree",
        completed=">>> tree",
        error=">>> tree-error",
    )
    missing_target_message = "No directory paths provided"
    use_spinner = False

    def __init__(self, processor: BlockProcessor, *, command: str = "tree") -> None:
        super().__init__(processor)
        self._command = command

    def parse_options(self, lines: Sequence[str]) -> dict[str, Any]:
        return {"flags": split_tree_lines(lines)[1]}

    def extract_target(self, lines: Sequence[str]) -> str | None:
        directories, _flags = split_tree_lines(lines)
        return directories[0] if directories else None

    def spinner_message(self, target: str | None, options: Mapping[str, Any]) -> str:
        return f"Generating tree for {target}"

    def completed_line(self, target: str | None, options: Mapping[str, Any]) -> str:
        return stamped(self.markers.completed)

    def format_error(self, target: str | None, message: str) -> list[str]:
        return format_error_block(self.markers.error, target, message)

    def execute(self, lines: list[str], options: dict[str, Any]) -> list[str]:
        directories, _flags = split_tree_lines(lines)
        if not directories:
            raise BlockOperationError(self.missing_target_message)
        if shutil.which(self._command) is None:
            raise BlockOperationError(f"'{self._command}' command not found. Please install the tree utility.")

        flags = options.get("flags", "")
        body = [*directories]
        if flags:
            body.append(f"-- {flags}")
        body.append("")

        for directory in directories:
            path = expand_path(directory)
            if not path.is_dir():
                body.extend([f"❌ Directory not found: {path}", ""])
                continue
            body.append(f"==> {path} <==")
            body.extend(self._run(path, flags))
            body.append("")
        return body

    def _run(self, path: Path, flags: str) -> list[str]:
        args = [self._command, str(path), *shlex.split(flags)]
        _logger.debug("Running %s", args)
        try:
            completed = subprocess.run(args, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise BlockOperationError(f"Failed to run '{self._command}': {exc}", target=str(path)) from exc
        if completed.returncode != 0:
            output = completed.stderr or completed.stdout
            return [f"❌ Error generating tree (exit code {completed.returncode})", *output.splitlines()]
        return [line for line in completed.stdout.splitlines() if line]
