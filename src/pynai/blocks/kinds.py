"""Block kind interface and descriptor-style base classes.

A kind tells the expander which lines start its blocks and how to expand
one. Most kinds derive from :class:`SyncBlockKind` or
:class:`AsyncBlockKind`, declare their :class:`BlockMarkers` and
implement ``execute``; the shared :class:`~pynai.blocks.processor.BlockProcessor`
does the rest.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from pynai.blocks import options as _options
from pynai.blocks.models import BlockMarkers, Phase
from pynai.blocks.scanner import iter_unfenced
from pynai.host import Document

if TYPE_CHECKING:
    from pynai.blocks.processor import BlockProcessor


class BlockKind(ABC):
    """Anything the :class:`~pynai.blocks.expander.BlockExpander` can drive."""

    name: ClassVar[str] = ""
    default_options: ClassVar[Mapping[str, Any]] = {}

    @property
    @abstractmethod
    def marker(self) -> str | Callable[[str], bool]:
        """Unexpanded marker spelling, or a predicate over a line."""

    def matches(self, line: str) -> bool:
        marker = self.marker
        if callable(marker):
            return bool(marker(line))
        return line == marker or line.strip() == marker

    def phase_of(self, line: str) -> Phase | None:
        return Phase.UNEXPANDED if self.matches(line) else None

    def parse_options(self, lines: Sequence[str]) -> dict[str, Any]:
        return _options.parse_options(lines, self.default_options)

    def extract_target(self, lines: Sequence[str]) -> str | None:
        return _options.extract_target(lines)

    def has_unexpanded(self, document: Document) -> bool:
        return any(self.matches(line) for _, line in iter_unfenced(document.get_lines()))

    @abstractmethod
    async def expand(self, document: Document, start: int, end: int) -> int:
        """Expand the block at ``[start, end)``; return the lines it now occupies."""

    def has_active_requests(self) -> bool:
        return False


class MarkedBlockKind(BlockKind):
    """Kind whose phase is spelled out by four marker variants."""

    markers: ClassVar[BlockMarkers]
    requires_target: ClassVar[bool] = True
    missing_target_message: ClassVar[str] = "No target provided"
    use_spinner: ClassVar[bool] = True
    show_progress_marker: ClassVar[bool] = True

    def __init__(self, processor: BlockProcessor) -> None:
        self._processor = processor

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    @property
    def marker(self) -> str:
        return self.markers.request

    def phase_of(self, line: str) -> Phase | None:
        return self.markers.phase_of(line)

    def has_unexpanded(self, document: Document) -> bool:
        return any(block.phase == Phase.UNEXPANDED for block in self._processor.scanner.scan(document, self))

    def has_active_requests(self) -> bool:
        return self._processor.has_active_requests(self.name)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def validate_target(self, target: str) -> bool:
        return True

    def spinner_message(self, target: str | None, options: Mapping[str, Any]) -> str:
        return f"Processing {target}" if target else "Processing"

    def completed_line(self, target: str | None, options: Mapping[str, Any]) -> str:
        return self.markers.completed

    def format_result(self, result: Any, target: str | None, options: Mapping[str, Any]) -> list[str]:
        if isinstance(result, str):
            body = result.splitlines()
        else:
            body = [str(line) for line in result]
        return [self.completed_line(target, options), *body]

    def format_error(self, target: str | None, message: str) -> list[str]:
        return [self.markers.error, *(message.splitlines() or [""])]


class SyncBlockKind(MarkedBlockKind):
    """Kind whose operation runs to completion on the caller's turn."""

    @abstractmethod
    def execute(self, lines: list[str], options: dict[str, Any]) -> list[str]:
        """Produce the result body; raise :class:`~pynai.exceptions.BlockOperationError` on failure."""

    async def expand(self, document: Document, start: int, end: int) -> int:
        return await self._processor.expand_sync(self, document, start, end)


class AsyncBlockKind(MarkedBlockKind):
    """Kind whose operation completes later, in its own task."""

    @abstractmethod
    async def execute(self, target: str, options: dict[str, Any]) -> Any:
        """Fetch the result; raise :class:`~pynai.exceptions.BlockOperationError` on failure."""

    async def expand(self, document: Document, start: int, end: int) -> int:
        return await self._processor.expand_async(self, document, start, end)
