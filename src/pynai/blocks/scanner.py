"""Locating blocks in document text.

A block starts at a line its kind recognises and runs until the next
line beginning with ``>>>`` or ``<<<``. The last block of a document ends
at its last non-blank line. Lines between a ```` ```ignore ```` fence and
the closing ```` ``` ```` are never scanned.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

from pynai.blocks.models import Block
from pynai.host import Document, DocumentId

if TYPE_CHECKING:
    from pynai.blocks.kinds import BlockKind

BLOCK_BOUNDARIES = (">>>", "<<<")
IGNORE_FENCE = "```ignore"
IGNORE_FENCE_END = "```"


def iter_unfenced(lines: Sequence[str]) -> Iterator[tuple[int, str]]:
    """Yield ``(index, line)`` for lines outside ignore fences."""
    ignoring = False
    for index, line in enumerate(lines):
        if ignoring:
            if line == IGNORE_FENCE_END:
                ignoring = False
            continue
        if line == IGNORE_FENCE:
            ignoring = True
            continue
        yield index, line


def find_block_end(lines: Sequence[str], start: int) -> int:
    """Exclusive end of the block whose marker is at *start*."""
    for index in range(start + 1, len(lines)):
        if lines[index].startswith(BLOCK_BOUNDARIES):
            return index
    end = len(lines)
    while end > start + 1 and not lines[end - 1].strip():
        end -= 1
    return end


def scan_blocks(lines: Sequence[str], kind: BlockKind) -> tuple[Block, ...]:
    blocks = []
    for index, line in iter_unfenced(lines):
        phase = kind.phase_of(line)
        if phase is None:
            continue
        end = find_block_end(lines, index)
        block_lines = lines[index:end]
        blocks.append(
            Block(
                kind=kind.name,
                start=index,
                end=end,
                phase=phase,
                target=kind.extract_target(block_lines),
                options=kind.parse_options(block_lines),
            )
        )
    return tuple(blocks)


class BlockScanner:
    """:func:`scan_blocks` with results cached per document version.

    At most ``max_entries`` (document, kind) results are kept; the least
    recently scanned one is dropped first, so documents that are never
    explicitly closed cannot grow the cache without bound.
    """

    def __init__(self, max_entries: int = 256) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._cache: OrderedDict[tuple[DocumentId, str], tuple[int, tuple[Block, ...]]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._cache)

    def scan(self, document: Document, kind: BlockKind) -> tuple[Block, ...]:
        key = (document.id, kind.name)
        cached = self._cache.get(key)
        if cached is not None and cached[0] == document.version:
            self._cache.move_to_end(key)
            return cached[1]
        blocks = scan_blocks(document.get_lines(), kind)
        self._cache[key] = (document.version, blocks)
        self._cache.move_to_end(key)
        while len(self._cache) > self._max_entries:
            self._cache.popitem(last=False)
        return blocks

    def invalidate(self, document_id: DocumentId | None = None) -> None:
        if document_id is None:
            self._cache.clear()
            return
        for key in [key for key in self._cache if key[0] == document_id]:
            del self._cache[key]
