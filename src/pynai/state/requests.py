"""Tracking of in-flight external operations.

A request exists from the moment a block starts its operation until the
result (or error) has been written back. Its presence in the active map
is what late callbacks check before touching a document.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pynai._redact import redact_for_log
from pynai.exceptions import RequestNotFoundError, StoreError
from pynai.state._base import RecordManager
from pynai.state.store import Subscriber

_logger = logging.getLogger(__name__)


class RequestStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class RequestRecord(BaseModel):
    """One tracked operation.

    Extra keys (``target``, ``provider``, ``model``, ``messages``...) are
    kept as-is so callers can attach whatever payload they need.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    type: str = ""
    status: RequestStatus = RequestStatus.PENDING
    timestamp: float = Field(default_factory=time.time)
    start_time: float | None = None
    end_time: float | None = None
    result: Any = None
    error: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.status != RequestStatus.PENDING


class RequestManager(RecordManager[RequestRecord]):
    """Active request map plus the derived ``processing`` flag."""

    record_type = RequestRecord
    slice_key = "active_requests"
    label = "Request"

    def __init__(self) -> None:
        super().__init__({"processing": False})

    def _not_found(self, record_id: str) -> StoreError:
        return RequestNotFoundError(record_id)

    def _extra_updates(self, records: dict[str, Any]) -> dict[str, Any]:
        processing = len(records) > 0
        # Only commit the flag when it flips so processing subscribers
        # see transitions, not every request mutation.
        if processing != self._store.get("processing"):
            return {"processing": processing}
        return {}

    def register(self, record_id: str, data: Any) -> str:
        request_id = super().register(record_id, data)
        _logger.debug("Registered request %s: %s", request_id, redact_for_log(self._raw().get(request_id)))
        return request_id

    def clear(self, record_id: str) -> bool:
        removed = super().clear(record_id)
        if removed:
            _logger.debug("Cleared request %s (%d remaining)", record_id, self.count())
        return removed

    def has_active(self) -> bool:
        return self.count() > 0

    def is_processing(self) -> bool:
        return bool(self._store.get("processing"))

    def of_type(self, request_type: str) -> dict[str, RequestRecord]:
        return {rid: record for rid, record in self.get_all().items() if record.type == request_type}

    def subscribe_processing(self, callback: Subscriber) -> Callable[[], bool]:
        """Fire *callback* only when the derived processing flag flips."""
        return self._store.subscribe("processing", callback)

    def debug(self) -> dict[str, Any]:
        info = super().debug()
        info["is_processing"] = self.is_processing()
        return info
