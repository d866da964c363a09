"""High-level async entry point for hosts embedding the engine."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from pynai.blocks.expander import BlockExpander, ExpansionReport
from pynai.blocks.kinds import BlockKind
from pynai.blocks.processor import BlockProcessor
from pynai.config import NaiConfig
from pynai.exceptions import NaiError
from pynai.host import AsyncioScheduler, Document, Notifier, Scheduler
from pynai.kinds import builtin_kinds
from pynai.state.facade import State

_logger = logging.getLogger(__name__)


class NaiClient:
    """Coordinator owning the state, the block processor and the expander.

    Usage::

        async with NaiClient(NaiConfig.from_env()) as client:
            document = TextDocument.from_text(text)
            client.activate(document)
            if await client.expand_all(document):
                await client.wait_until_idle(timeout=60)
    """

    def __init__(
        self,
        config: NaiConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        scheduler: Scheduler | None = None,
        notify: Notifier | None = None,
        builtin: bool = True,
    ) -> None:
        self._config = config or NaiConfig()
        self._external_session = session is not None
        self._http_session = session
        self.state = State(self._config)
        self.processor = BlockProcessor(
            self.state,
            scheduler or AsyncioScheduler(),
            config=self._config,
            notify=notify,
        )
        self.expander = BlockExpander(notify=notify)
        if builtin:
            for kind in builtin_kinds(self.processor, self._config, self._require_session):
                self.expander.register(kind)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> NaiClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        cancelled = self.processor.cancel_all()
        if cancelled:
            _logger.info("Cancelled %d request(s) on shutdown", cancelled)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    @property
    def config(self) -> NaiConfig:
        return self._config

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            raise NaiError("Client not initialized. Use 'async with NaiClient(...) as client:'")
        return self._http_session

    def register_kind(self, kind: BlockKind) -> None:
        self.expander.register(kind)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def activate(self, document: Document) -> None:
        self.state.activate_buffer(document.id)

    def deactivate(self, document: Document) -> bool:
        return self.state.deactivate_buffer(document.id)

    def is_active(self, document: Document) -> bool:
        return self.state.is_buffer_activated(document.id)

    def close_document(self, document: Document) -> int:
        """Forget everything tied to *document*; returns the requests dropped."""
        dropped = self.processor.discard_document(document.id)
        self.state.deactivate_buffer(document.id)
        if dropped:
            _logger.info("Dropped %d request(s) for closed document %r", dropped, document.id)
        return dropped

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    async def expand_all(self, document: Document) -> bool:
        return await self.expander.expand_all(document)

    async def expand_report(self, document: Document) -> ExpansionReport:
        return await self.expander.expand_report(document)

    def cancel(self, request_id: str) -> bool:
        return self.processor.cancel(request_id)

    def cancel_all(self) -> int:
        return self.processor.cancel_all()

    async def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Wait until no request is in flight.

        Parameters
        ----------
        timeout
            Seconds to wait. ``None`` waits indefinitely.

        Returns
        -------
        bool
            ``True`` once idle, ``False`` on timeout.
        """
        if not self.state.is_processing():
            return True
        idle = asyncio.Event()

        def _on_processing(new_value: Any, _old_value: Any, _path: str) -> None:
            if not new_value:
                idle.set()

        unsubscribe = self.state.requests.subscribe_processing(_on_processing)
        try:
            await asyncio.wait_for(idle.wait(), timeout)
            return True
        except TimeoutError:
            return False
        finally:
            unsubscribe()
