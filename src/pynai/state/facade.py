"""Single entry point over all engine state.

:class:`State` composes the request, indicator, buffer and UI managers.
It is built once by :class:`~pynai.client.NaiClient` and handed to the
block machinery; nothing else owns request or indicator state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pynai.config import NaiConfig
from pynai.exceptions import SnapshotError, StateValidationError
from pynai.host import DocumentId
from pynai.state.buffers import BufferManager
from pynai.state.indicators import IndicatorManager, IndicatorRecord
from pynai.state.requests import RequestManager, RequestRecord
from pynai.state.store import StoreSnapshot
from pynai.state.ui import UiManager

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateSnapshot:
    requests: StoreSnapshot
    indicators: StoreSnapshot
    buffers: StoreSnapshot
    ui: StoreSnapshot


class State:
    def __init__(self, config: NaiConfig | None = None) -> None:
        config = config or NaiConfig()
        self.requests = RequestManager()
        self.indicators = IndicatorManager()
        self.buffers = BufferManager()
        self.ui = UiManager(config.active_provider, config.model, providers=config.providers)
        self.requests.subscribe_processing(self._mirror_processing)

    def _mirror_processing(self, new_value: Any, _old_value: Any, _path: str) -> None:
        self.ui.set_processing(bool(new_value))

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def register_request(self, request_id: str, data: Mapping[str, Any]) -> str:
        return self.requests.register(request_id, data)

    def update_request(self, request_id: str, updates: Mapping[str, Any]) -> RequestRecord:
        return self.requests.update(request_id, updates)

    def get_request(self, request_id: str) -> RequestRecord:
        return self.requests.get(request_id)

    def has_request(self, request_id: str) -> bool:
        return self.requests.has(request_id)

    def clear_request(self, request_id: str) -> bool:
        return self.requests.clear(request_id)

    def get_active_requests(self) -> dict[str, RequestRecord]:
        return self.requests.get_all()

    def has_active_requests(self) -> bool:
        return self.requests.has_active()

    def is_processing(self) -> bool:
        return self.requests.is_processing()

    # ------------------------------------------------------------------
    # Indicators
    # ------------------------------------------------------------------

    def register_indicator(self, indicator_id: str, data: Mapping[str, Any]) -> str:
        return self.indicators.register(indicator_id, data)

    def update_indicator(self, indicator_id: str, updates: Mapping[str, Any]) -> IndicatorRecord:
        return self.indicators.update(indicator_id, updates)

    def get_indicator(self, indicator_id: str) -> IndicatorRecord:
        return self.indicators.get(indicator_id)

    def clear_indicator(self, indicator_id: str) -> bool:
        return self.indicators.clear(indicator_id)

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------

    def activate_buffer(self, document_id: DocumentId) -> None:
        self.buffers.activate(document_id)

    def deactivate_buffer(self, document_id: DocumentId) -> bool:
        return self.buffers.deactivate(document_id)

    def is_buffer_activated(self, document_id: DocumentId) -> bool:
        return self.buffers.is_activated(document_id)

    # ------------------------------------------------------------------
    # UI
    # ------------------------------------------------------------------

    def set_current_provider(self, provider: str) -> None:
        self.ui.set_provider(provider)

    def get_current_provider(self) -> str:
        return self.ui.get_provider()

    def set_current_model(self, model: str) -> None:
        self.ui.set_model(model)

    def get_current_model(self) -> str:
        return self.ui.get_model()

    # ------------------------------------------------------------------
    # Cross-manager operations
    # ------------------------------------------------------------------

    def reset_processing_state(self) -> None:
        """Forget every request and indicator and stop all timers."""
        self.indicators.clear_all()
        self.requests.clear_all()
        self.ui.set_processing(False)
        _logger.debug("Processing state reset")

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            requests=self.requests.snapshot(),
            indicators=self.indicators.snapshot(),
            buffers=self.buffers.snapshot(),
            ui=self.ui.snapshot(),
        )

    def restore(self, snapshot: StateSnapshot) -> None:
        if not isinstance(snapshot, StateSnapshot):
            raise SnapshotError("Snapshot must be a StateSnapshot")
        self.requests.restore(snapshot.requests)
        self.indicators.restore(snapshot.indicators)
        self.buffers.restore(snapshot.buffers)
        self.ui.restore(snapshot.ui)
        # The UI flag follows the restored request map, not the UI snapshot.
        try:
            self.ui.set_processing(self.requests.is_processing())
        except StateValidationError:  # pragma: no cover - flag is always a bool
            _logger.debug("Could not resync processing flag", exc_info=True)

    def debug(self) -> dict[str, Any]:
        return {
            "active_requests": self.requests.count(),
            "active_indicators": self.indicators.count(),
            "activated_buffers": len(self.buffers.get_all()),
            "current_provider": self.get_current_provider(),
            "current_model": self.get_current_model(),
            "is_processing": self.is_processing(),
        }
