"""pynai - block expansion engine for editor-embedded AI chat transcripts."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pynai")
except PackageNotFoundError:
    __version__ = "0+local"
from pynai.blocks import (
    AsyncBlockKind,
    Block,
    BlockExpander,
    BlockKind,
    BlockMarkers,
    BlockProcessor,
    ExpansionReport,
    MarkedBlockKind,
    Phase,
    SyncBlockKind,
)
from pynai.client import NaiClient
from pynai.config import NaiConfig
from pynai.exceptions import (
    BlockKindError,
    BlockOperationError,
    DocumentClosedError,
    DocumentError,
    IndicatorNotFoundError,
    NaiConfigError,
    NaiError,
    PathNotFoundError,
    RequestNotFoundError,
    SnapshotError,
    StateValidationError,
    StoreError,
)
from pynai.host import AsyncioScheduler, Document, Scheduler, TextDocument
from pynai.state.facade import State, StateSnapshot
from pynai.state.store import Store

__all__ = [
    "__version__",
    "AsyncBlockKind",
    "AsyncioScheduler",
    "Block",
    "BlockExpander",
    "BlockKind",
    "BlockKindError",
    "BlockMarkers",
    "BlockOperationError",
    "BlockProcessor",
    "Document",
    "DocumentClosedError",
    "DocumentError",
    "ExpansionReport",
    "IndicatorNotFoundError",
    "MarkedBlockKind",
    "NaiClient",
    "NaiConfig",
    "NaiConfigError",
    "NaiError",
    "PathNotFoundError",
    "Phase",
    "RequestNotFoundError",
    "Scheduler",
    "SnapshotError",
    "State",
    "StateSnapshot",
    "StateValidationError",
    "Store",
    "StoreError",
    "SyncBlockKind",
    "TextDocument",
]
