"""Progress indicator state.

An indicator is the visible "in progress" affordance of one request: the
line range its block currently occupies, the row its status line lives on
and the stats rendered there. The live timer driving the animation is a
host resource, so it is kept beside the store rather than inside it.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pynai.exceptions import IndicatorNotFoundError, StoreError
from pynai.host import DocumentId, Timer
from pynai.state._base import RecordManager, validate_record_id
from pynai.state.store import StoreSnapshot

_logger = logging.getLogger(__name__)


class IndicatorRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    document_id: int | str | None = None
    start_row: int = Field(default=0, ge=0)
    end_row: int = Field(default=0, ge=0)
    spinner_row: int | None = None
    marker_line: str = ""
    frame: int = 0
    message: str = ""
    stats: dict[str, Any] = Field(default_factory=dict)
    created_at: float = Field(default_factory=time.time)

    @model_validator(mode="after")
    def _check_range(self) -> IndicatorRecord:
        if self.end_row < self.start_row:
            raise ValueError("end_row must not precede start_row")
        return self

    @property
    def size(self) -> int:
        return self.end_row - self.start_row


class IndicatorManager(RecordManager[IndicatorRecord]):
    """Indicator records plus their running timers."""

    record_type = IndicatorRecord
    slice_key = "active_indicators"
    label = "Indicator"

    def __init__(self) -> None:
        super().__init__()
        self._timers: dict[str, Timer] = {}

    def _not_found(self, record_id: str) -> StoreError:
        return IndicatorNotFoundError(record_id)

    def attach_timer(self, indicator_id: str, timer: Timer) -> None:
        """Hand a running timer to the indicator; it is stopped on clear."""
        if not self.has(indicator_id):
            timer.cancel()
            raise IndicatorNotFoundError(indicator_id)
        previous = self._timers.pop(indicator_id, None)
        if previous is not None:
            previous.cancel()
        self._timers[indicator_id] = timer

    def stop_timer(self, indicator_id: str) -> bool:
        timer = self._timers.pop(indicator_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def has_timer(self, indicator_id: str) -> bool:
        return indicator_id in self._timers

    def clear(self, record_id: str) -> bool:
        validate_record_id(record_id, self.label)
        self.stop_timer(record_id)
        return super().clear(record_id)

    def clear_all(self) -> None:
        for indicator_id in list(self._timers):
            self.stop_timer(indicator_id)
        super().clear_all()

    def update_stats(self, indicator_id: str, **stats: Any) -> IndicatorRecord:
        record = self.get(indicator_id)
        return self.update(indicator_id, {"stats": {**record.stats, **stats}})

    def for_document(self, document_id: DocumentId) -> dict[str, IndicatorRecord]:
        return {iid: rec for iid, rec in self.get_all().items() if rec.document_id == document_id}

    def shift(
        self,
        document_id: DocumentId,
        from_row: int,
        delta: int,
        *,
        exclude: str | None = None,
    ) -> list[str]:
        """Move indicators that start at or below *from_row* by *delta* lines.

        Called after a region above them changed size. Returns the ids moved.
        """
        if delta == 0:
            return []
        records = self._raw()
        moved: list[str] = []
        for indicator_id, data in records.items():
            if indicator_id == exclude or data.get("document_id") != document_id:
                continue
            if data["start_row"] < from_row:
                continue
            data["start_row"] = max(0, data["start_row"] + delta)
            data["end_row"] = max(data["start_row"], data["end_row"] + delta)
            if data.get("spinner_row") is not None:
                data["spinner_row"] = max(data["start_row"], data["spinner_row"] + delta)
            moved.append(indicator_id)
        if moved:
            self._commit(records)
            _logger.debug("Shifted indicators %s by %+d", moved, delta)
        return moved

    def restore(self, snapshot: StoreSnapshot) -> None:
        super().restore(snapshot)
        live = set(self._raw())
        for indicator_id in [iid for iid in self._timers if iid not in live]:
            self.stop_timer(indicator_id)

    def debug(self) -> dict[str, Any]:
        info = super().debug()
        info["running_timers"] = len(self._timers)
        return info
