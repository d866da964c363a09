"""Block kinds shipped with pynai."""

from __future__ import annotations

from collections.abc import Callable

import aiohttp

from pynai.blocks.kinds import MarkedBlockKind
from pynai.blocks.processor import BlockProcessor
from pynai.config import NaiConfig
from pynai.kinds.snapshot import SnapshotKind
from pynai.kinds.tree import TreeKind
from pynai.kinds.web import WebKind, WebPage


def builtin_kinds(
    processor: BlockProcessor,
    config: NaiConfig,
    session: Callable[[], aiohttp.ClientSession],
) -> list[MarkedBlockKind]:
    return [
        SnapshotKind(processor),
        TreeKind(processor, command=config.tree_command),
        WebKind(
            processor,
            session,
            timeout=config.web_timeout,
            max_content_length=config.web_max_content_length,
        ),
    ]


__all__ = ["SnapshotKind", "TreeKind", "WebKind", "WebPage", "builtin_kinds"]
