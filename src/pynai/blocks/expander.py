"""Document-wide expansion across every registered block kind."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pynai.blocks.kinds import BlockKind
from pynai.blocks.scanner import find_block_end, iter_unfenced
from pynai.exceptions import BlockKindError
from pynai.host import Document, Notifier

_logger = logging.getLogger(__name__)


@dataclass
class ExpansionReport:
    """What one :meth:`BlockExpander.expand_report` pass did.

    Truthy when anything was expanded or a kind still has requests in flight.
    """

    expanded: dict[str, int] = field(default_factory=dict)
    pending: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def total_expanded(self) -> int:
        return sum(self.expanded.values())

    def __bool__(self) -> bool:
        return self.total_expanded > 0 or bool(self.pending)


class BlockExpander:
    """Registry of block kinds and the driver that expands them."""

    def __init__(self, *, notify: Notifier | None = None) -> None:
        self._kinds: dict[str, BlockKind] = {}
        self._notify_cb = notify

    def __contains__(self, name: object) -> bool:
        return name in self._kinds

    @property
    def kinds(self) -> tuple[BlockKind, ...]:
        return tuple(self._kinds.values())

    def register(self, kind: BlockKind) -> None:
        name = getattr(kind, "name", None)
        if not isinstance(name, str) or not name:
            raise BlockKindError("Block kind must have a non-empty 'name'")
        if name in self._kinds:
            raise BlockKindError(f"Block kind '{name}' is already registered")
        marker = getattr(kind, "marker", None)
        if not (isinstance(marker, str) and marker) and not callable(marker):
            raise BlockKindError(f"Block kind '{name}' must have a 'marker' string or predicate")
        for attr in ("has_unexpanded", "expand"):
            if not callable(getattr(kind, attr, None)):
                raise BlockKindError(f"Block kind '{name}' must have an '{attr}' method")
        self._kinds[name] = kind
        _logger.debug("Registered block kind %s", name)

    def unregister(self, name: str) -> bool:
        return self._kinds.pop(name, None) is not None

    async def expand_all(self, document: Document) -> bool:
        """Expand every unexpanded block; ``True`` if anything ran or is still running."""
        return bool(await self.expand_report(document))

    async def expand_report(self, document: Document) -> ExpansionReport:
        report = ExpansionReport()
        for name, kind in list(self._kinds.items()):
            if not document.is_valid():
                break
            count = await self._expand_kind(document, kind, report)
            if count:
                report.expanded[name] = count
            if kind.has_active_requests():
                report.pending.append(name)

        if report.expanded:
            summary = ", ".join(f"{name}: {count}" for name, count in report.expanded.items())
            self._notify(f"Expanded blocks - {summary}", logging.INFO)
        if report.pending:
            self._notify(f"Async requests in progress: {', '.join(report.pending)}", logging.INFO)
        return report

    async def _expand_kind(self, document: Document, kind: BlockKind, report: ExpansionReport) -> int:
        if not kind.has_unexpanded(document):
            return 0

        lines = document.get_lines()
        starts = [index for index, line in iter_unfenced(lines) if kind.matches(line)]
        line_offset = 0
        expanded = 0
        for original_start in starts:
            if not document.is_valid():
                break
            lines = document.get_lines()
            start = original_start + line_offset
            if start >= len(lines) or not kind.matches(lines[start]):
                # Something else rewrote the document meanwhile; resync on the
                # first instance still waiting.
                start = next((index for index, line in iter_unfenced(lines) if kind.matches(line)), -1)
                if start < 0:
                    break
                line_offset = start - original_start
            end = find_block_end(lines, start)
            try:
                new_size = await kind.expand(document, start, end)
            except Exception as exc:
                _logger.exception("Error expanding %s block at line %d", kind.name, start)
                report.failed[kind.name] = str(exc) or type(exc).__name__
                self._notify(f"Error expanding block at line {start}: {report.failed[kind.name]}", logging.ERROR)
                continue
            expanded += 1
            line_offset += new_size - (end - start)
        return expanded

    def _notify(self, message: str, level: int) -> None:
        if self._notify_cb is None:
            _logger.log(level, message)
            return
        try:
            self._notify_cb(message, level)
        except Exception:
            _logger.warning("Notification callback failed", exc_info=True)
