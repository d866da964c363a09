"""Host environment interfaces.

The engine never talks to an editor directly. It reads and rewrites line
ranges through :class:`Document` and schedules work through
:class:`Scheduler`. :class:`TextDocument` and :class:`AsyncioScheduler`
are the in-process implementations used by :class:`~pynai.client.NaiClient`
and the test suite.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Coroutine, Iterable, Sequence
from typing import Any, Protocol, TypeVar

from pynai.exceptions import DocumentClosedError, DocumentError

_logger = logging.getLogger(__name__)

T = TypeVar("T")

DocumentId = int | str

#: ``notify(message, level)``: transient user notification; ``level`` is a logging level.
Notifier = Callable[[str, int], None]

_document_ids = itertools.count(1)


class Document(Protocol):
    """Structural interface of an editable, line-addressed document.

    ``set_lines(a, b, lines)`` replaces the half-open range ``[a, b)`` and
    must be visible to the next ``get_lines`` call. ``version`` changes on
    every write.
    """

    @property
    def id(self) -> DocumentId: ...

    @property
    def version(self) -> int: ...

    def is_valid(self) -> bool: ...

    def line_count(self) -> int: ...

    def get_lines(self, start: int = 0, end: int | None = None) -> list[str]: ...

    def set_lines(self, start: int, end: int, lines: Sequence[str]) -> None: ...


class Timer(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    """Cooperative scheduling capability supplied by the host."""

    def call_soon(self, callback: Callable[[], Any]) -> None: ...

    def call_every(self, interval: float, callback: Callable[[], Any]) -> Timer: ...

    def spawn(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]: ...

    async def tick(self) -> None: ...


class TextDocument:
    """In-memory :class:`Document`."""

    def __init__(self, lines: Iterable[str] = (), *, document_id: DocumentId | None = None) -> None:
        self._lines: list[str] = list(lines)
        self._id = document_id if document_id is not None else next(_document_ids)
        self._version = 0
        self._valid = True

    @classmethod
    def from_text(cls, text: str, *, document_id: DocumentId | None = None) -> TextDocument:
        return cls(text.split("\n"), document_id=document_id)

    def __repr__(self) -> str:
        return f"TextDocument(id={self._id!r}, lines={len(self._lines)}, valid={self._valid})"

    @property
    def id(self) -> DocumentId:
        return self._id

    @property
    def version(self) -> int:
        return self._version

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    def is_valid(self) -> bool:
        return self._valid

    def close(self) -> None:
        self._valid = False

    def line_count(self) -> int:
        return len(self._lines)

    def get_lines(self, start: int = 0, end: int | None = None) -> list[str]:
        if not self._valid:
            raise DocumentClosedError(f"Document {self._id!r} is closed")
        return list(self._lines[start:end])

    def set_lines(self, start: int, end: int, lines: Sequence[str]) -> None:
        if not self._valid:
            raise DocumentClosedError(f"Document {self._id!r} is closed")
        if start < 0 or end < start or end > len(self._lines):
            raise DocumentError(f"Invalid line range [{start}, {end}) for {len(self._lines)} lines")
        if isinstance(lines, str):
            raise DocumentError("lines must be a sequence of strings, not a string")
        self._lines[start:end] = list(lines)
        self._version += 1


class RepeatingTimer:
    """Fires *callback* now and then every *interval* seconds until cancelled."""

    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float, callback: Callable[[], Any]) -> None:
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._handle: asyncio.Handle | None = loop.call_soon(self._fire)
        self._cancelled = False

    def _fire(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            _logger.warning("Timer callback failed", exc_info=True)
        if not self._cancelled:
            self._handle = self._loop.call_later(self._interval, self._fire)

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioScheduler:
    """:class:`Scheduler` backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_soon(self, callback: Callable[[], Any]) -> None:
        self.loop.call_soon(callback)

    def call_every(self, interval: float, callback: Callable[[], Any]) -> RepeatingTimer:
        return RepeatingTimer(self.loop, interval, callback)

    def spawn(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        return self.loop.create_task(coro)

    async def tick(self) -> None:
        await asyncio.sleep(0)
