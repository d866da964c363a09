"""Block model, kinds and the expansion machinery."""

from pynai.blocks.expander import BlockExpander, ExpansionReport
from pynai.blocks.kinds import AsyncBlockKind, BlockKind, MarkedBlockKind, SyncBlockKind
from pynai.blocks.models import Block, BlockMarkers, Phase
from pynai.blocks.processor import BlockProcessor
from pynai.blocks.scanner import BlockScanner, find_block_end, scan_blocks

__all__ = [
    "AsyncBlockKind",
    "Block",
    "BlockExpander",
    "BlockKind",
    "BlockMarkers",
    "BlockProcessor",
    "BlockScanner",
    "ExpansionReport",
    "MarkedBlockKind",
    "Phase",
    "SyncBlockKind",
    "find_block_end",
    "scan_blocks",
]
