"""Expansion of a single block.

:class:`BlockProcessor` drives one block from its unexpanded spelling to a
terminal one. It registers a request and an indicator for the block,
keeps the indicator's status line animated, and writes the result (or an
error block) back when the operation settles.

Completions are routed through :meth:`BlockProcessor.resolve` and
:meth:`BlockProcessor.reject`. Both re-check that the request is still
registered and the document still valid before writing; a completion for
a cancelled or discarded request is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pynai.blocks.formatting import PROCESSING_LINE, is_status_line, render_status_line
from pynai.blocks.kinds import AsyncBlockKind, MarkedBlockKind, SyncBlockKind
from pynai.blocks.scanner import BlockScanner
from pynai.config import NaiConfig
from pynai.exceptions import BlockOperationError
from pynai.host import Document, DocumentId, Notifier, Scheduler
from pynai.state.facade import State
from pynai.state.requests import RequestStatus

_logger = logging.getLogger(__name__)

#: Lines an asynchronous block occupies while in flight: marker, target, status.
ASYNC_PLACEHOLDER_SIZE = 3


@dataclass(slots=True)
class _InFlight:
    """Host-side handles of one tracked request."""

    kind: MarkedBlockKind
    document: Document
    target: str | None
    options: dict[str, Any]


class BlockProcessor:
    """Runs the expand / settle cycle for :class:`MarkedBlockKind` blocks."""

    def __init__(
        self,
        state: State,
        scheduler: Scheduler,
        *,
        config: NaiConfig | None = None,
        notify: Notifier | None = None,
    ) -> None:
        self._state = state
        self._scheduler = scheduler
        self._config = config or NaiConfig()
        self._notify_cb = notify
        self.scanner = BlockScanner()
        self._inflight: dict[str, _InFlight] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        # Sync expansions waiting on their tick: request id -> size written on settle.
        self._sync_waiting: dict[str, int | None] = {}

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    async def expand_sync(self, kind: SyncBlockKind, document: Document, start: int, end: int) -> int:
        """Expand a block whose operation runs on this turn.

        The operation is deferred by one scheduler tick so the progress
        affordance is drawn before it runs. Returns the number of lines the
        block occupies afterwards.
        """
        lines = document.get_lines(start, end)
        prepared = self._prepare(kind, document, start, end, lines)
        if isinstance(prepared, int):
            return prepared
        target, options = prepared

        marker_line = lines[0] if lines else kind.marker
        if kind.show_progress_marker:
            document.set_lines(start, start + 1, [kind.markers.progress])
            marker_line = kind.markers.progress

        end_row = end
        spinner_row: int | None = None
        if kind.use_spinner:
            spinner_row = min(start + 2, end)
            document.set_lines(spinner_row, spinner_row, [PROCESSING_LINE])
            end_row += 1
            self._shift(document.id, end, 1)

        request_id = self._track(kind, document, start, end_row, spinner_row, marker_line, target, options)
        self._sync_waiting[request_id] = None
        try:
            try:
                await self._scheduler.tick()
            except asyncio.CancelledError:
                self._abandon(request_id)
                raise
            if not self._state.has_request(request_id):
                self.discard(request_id)
            else:
                try:
                    result = kind.execute(list(lines), dict(options))
                except BlockOperationError as exc:
                    self.reject(request_id, str(exc))
                except Exception as exc:
                    _logger.warning("%s block failed", kind.name, exc_info=True)
                    self.reject(request_id, _describe(exc))
                else:
                    self.resolve(request_id, result)
        finally:
            settled = self._sync_waiting.pop(request_id, None)
        return settled or 0

    async def expand_async(self, kind: AsyncBlockKind, document: Document, start: int, end: int) -> int:
        """Start a block whose operation completes later.

        The region is normalised to marker, target and status line, so the
        returned size is exact. The operation runs in its own task and
        settles through :meth:`resolve` / :meth:`reject`.
        """
        lines = document.get_lines(start, end)
        prepared = self._prepare(kind, document, start, end, lines)
        if isinstance(prepared, int):
            return prepared
        target, options = prepared
        assert target is not None  # noqa: S101

        document.set_lines(start, end, [kind.markers.progress, target, PROCESSING_LINE])
        self._shift(document.id, end, ASYNC_PLACEHOLDER_SIZE - (end - start))
        request_id = self._track(
            kind,
            document,
            start,
            start + ASYNC_PLACEHOLDER_SIZE,
            start + 2,
            kind.markers.progress,
            target,
            options,
        )
        self._tasks[request_id] = self._scheduler.spawn(self._run_async(kind, request_id, target, options))
        return ASYNC_PLACEHOLDER_SIZE

    async def _run_async(self, kind: AsyncBlockKind, request_id: str, target: str, options: dict[str, Any]) -> None:
        try:
            try:
                result = await kind.execute(target, dict(options))
            finally:
                # Settling below must not cancel the task it runs in.
                self._tasks.pop(request_id, None)
        except asyncio.CancelledError:
            self._abandon(request_id)
            raise
        except BlockOperationError as exc:
            self.reject(request_id, str(exc))
        except Exception as exc:
            _logger.warning("%s request %s failed", kind.name, request_id, exc_info=True)
            self.reject(request_id, _describe(exc))
        else:
            self.resolve(request_id, result)

    def _prepare(
        self,
        kind: MarkedBlockKind,
        document: Document,
        start: int,
        end: int,
        lines: list[str],
    ) -> tuple[str | None, dict[str, Any]] | int:
        """Extract target and options, or write an input error and return its size."""
        target = kind.extract_target(lines)
        if not target and (kind.requires_target or isinstance(kind, AsyncBlockKind)):
            return self._write_input_error(kind, document, start, end, None, kind.missing_target_message)
        if target and not kind.validate_target(target):
            return self._write_input_error(kind, document, start, end, target, f"Invalid target: {target}")
        return target, kind.parse_options(lines)

    def _write_input_error(
        self,
        kind: MarkedBlockKind,
        document: Document,
        start: int,
        end: int,
        target: str | None,
        message: str,
    ) -> int:
        error_lines = kind.format_error(target, message)
        document.set_lines(start, end, error_lines)
        self._shift(document.id, end, len(error_lines) - (end - start))
        _logger.debug("%s block at line %d rejected: %s", kind.name, start, message)
        return len(error_lines)

    def _track(
        self,
        kind: MarkedBlockKind,
        document: Document,
        start: int,
        end_row: int,
        spinner_row: int | None,
        marker_line: str,
        target: str | None,
        options: dict[str, Any],
    ) -> str:
        request_id = f"{kind.name}_{secrets.token_hex(8)}"
        self._inflight[request_id] = _InFlight(kind=kind, document=document, target=target, options=options)
        self._state.register_request(
            request_id,
            {
                "type": kind.name,
                "document_id": document.id,
                "target": target,
                "options": options,
                "start_time": time.time(),
            },
        )
        self._state.register_indicator(
            request_id,
            {
                "document_id": document.id,
                "start_row": start,
                "end_row": end_row,
                "spinner_row": spinner_row,
                "marker_line": marker_line,
                "message": kind.spinner_message(target, options),
            },
        )
        if spinner_row is not None:
            timer = self._scheduler.call_every(self._config.spinner_interval, lambda: self._animate(request_id))
            self._state.indicators.attach_timer(request_id, timer)
        return request_id

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def resolve(self, request_id: str, result: Any) -> bool:
        """Write *result* into the request's block. ``False`` if the request is gone."""
        flight = self._inflight.get(request_id)
        if flight is None or not self._state.has_request(request_id):
            _logger.debug("Dropping stale result for %s", request_id)
            self.discard(request_id)
            return False
        self._state.update_request(request_id, {"status": RequestStatus.COMPLETED, "end_time": time.time()})
        try:
            result_lines = flight.kind.format_result(result, flight.target, flight.options)
        except Exception as exc:
            _logger.warning("Formatting %s result failed", flight.kind.name, exc_info=True)
            return self.reject(request_id, _describe(exc))
        self._finish(request_id, result_lines)
        return True

    def reject(self, request_id: str, message: str) -> bool:
        """Write an error block for the request. ``False`` if the request is gone."""
        flight = self._inflight.get(request_id)
        if flight is None or not self._state.has_request(request_id):
            _logger.debug("Dropping stale error for %s: %s", request_id, message)
            self.discard(request_id)
            return False
        self._state.update_request(
            request_id,
            {"status": RequestStatus.ERROR, "end_time": time.time(), "error": message},
        )
        self._finish(request_id, flight.kind.format_error(flight.target, message))
        self._notify(f"Error in {flight.kind.name}: {message}", logging.ERROR)
        return True

    def _finish(self, request_id: str, lines: Sequence[str]) -> int | None:
        """Replace the request's region with *lines*, then forget the request."""
        flight = self._inflight[request_id]
        document = flight.document
        self._state.indicators.stop_timer(request_id)
        if self._config.debug:
            record = self._state.get_request(request_id)
            _logger.info(
                "%s request %s settled as %s after %.2fs",
                flight.kind.name,
                request_id,
                record.status,
                time.time() - (record.start_time or record.timestamp),
            )
        size: int | None = None
        try:
            if not document.is_valid():
                _logger.debug("Document %r closed before %s settled", document.id, request_id)
            else:
                region = self._locate(request_id, document)
                if region is None:
                    _logger.debug("Region of %s no longer in document %r", request_id, document.id)
                else:
                    start, end = region
                    document.set_lines(start, end, list(lines))
                    size = len(lines)
                    self._shift(document.id, end, size - (end - start), exclude=request_id)
        finally:
            self._release(request_id)
        if request_id in self._sync_waiting:
            self._sync_waiting[request_id] = size
        return size

    def _locate(self, request_id: str, document: Document) -> tuple[int, int] | None:
        if not self._state.indicators.has(request_id):
            return None
        record = self._state.get_indicator(request_id)
        lines = document.get_lines()
        marker = record.marker_line.strip()

        def _at(row: int) -> bool:
            return row < len(lines) and lines[row].strip() == marker

        if _at(record.start_row):
            start = record.start_row
        else:
            rows = [row for row in range(len(lines)) if _at(row)]
            if not rows:
                return None
            start = min(rows, key=lambda row: abs(row - record.start_row))
        return start, min(start + record.size, len(lines))

    def _shift(self, document_id: DocumentId, from_row: int, delta: int, *, exclude: str | None = None) -> None:
        if delta:
            self._state.indicators.shift(document_id, from_row, delta, exclude=exclude)

    def _release(self, request_id: str) -> None:
        self._inflight.pop(request_id, None)
        self._state.clear_indicator(request_id)
        self._state.clear_request(request_id)

    # ------------------------------------------------------------------
    # Progress animation
    # ------------------------------------------------------------------

    def _animate(self, request_id: str) -> None:
        flight = self._inflight.get(request_id)
        if flight is None:
            self._state.indicators.stop_timer(request_id)
            return
        document = flight.document
        tracked = self._state.has_request(request_id) and self._state.indicators.has(request_id)
        if not document.is_valid() or not tracked:
            self.discard(request_id)
            return

        record = self._state.get_indicator(request_id)
        row = record.spinner_row
        frames = self._config.spinner_frames
        if row is None or row >= document.line_count():
            return
        if not is_status_line(document.get_lines(row, row + 1)[0], frames):
            # The status line moved under us; skip this frame.
            return
        text = render_status_line(
            frames[record.frame % len(frames)],
            record.message,
            time.time() - record.created_at,
            record.stats,
        )
        document.set_lines(row, row + 1, [text])
        self._state.update_indicator(request_id, {"frame": (record.frame + 1) % len(frames)})

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, request_id: str) -> bool:
        """Cancel a request and mark its block as failed with ``Cancelled``."""
        flight = self._inflight.get(request_id)
        if flight is None:
            return False
        if not self._state.has_request(request_id):
            # Already dropped from state; only the local handles remain.
            return self.discard(request_id)
        self._state.update_request(request_id, {"status": RequestStatus.CANCELLED, "end_time": time.time()})
        self._cancel_task(request_id)
        self._finish(request_id, flight.kind.format_error(flight.target, "Cancelled"))
        _logger.info("Cancelled %s request %s", flight.kind.name, request_id)
        return True

    def cancel_document(self, document_id: DocumentId) -> int:
        return sum(self.cancel(request_id) for request_id in self._requests_of(document_id))

    def cancel_all(self) -> int:
        return sum(self.cancel(request_id) for request_id in list(self._inflight))

    def _abandon(self, request_id: str) -> None:
        """Settle a request whose awaiting task was cancelled from outside."""
        flight = self._inflight.get(request_id)
        if flight is None:
            return
        if flight.document.is_valid():
            self.cancel(request_id)
        else:
            self.discard(request_id)

    def discard(self, request_id: str) -> bool:
        """Forget a request without touching its document."""
        if request_id not in self._inflight:
            return False
        self._cancel_task(request_id)
        self._release(request_id)
        _logger.debug("Discarded request %s", request_id)
        return True

    def discard_document(self, document_id: DocumentId) -> int:
        count = sum(self.discard(request_id) for request_id in self._requests_of(document_id))
        self.scanner.invalidate(document_id)
        return count

    def _requests_of(self, document_id: DocumentId) -> list[str]:
        return [rid for rid, flight in self._inflight.items() if flight.document.id == document_id]

    def _cancel_task(self, request_id: str) -> None:
        task = self._tasks.pop(request_id, None)
        if task is not None and not task.done():
            task.cancel()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_active_requests(self, kind_name: str | None = None) -> bool:
        if kind_name is None:
            return self._state.has_active_requests()
        return bool(self._state.requests.of_type(kind_name))

    def _notify(self, message: str, level: int) -> None:
        if self._notify_cb is None:
            _logger.log(level, message)
            return
        try:
            self._notify_cb(message, level)
        except Exception:
            _logger.warning("Notification callback failed", exc_info=True)


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
