"""Shared machinery for id-keyed record managers.

:class:`RecordManager` owns one mapping slice (``{id: record}``) in a
private :class:`~pynai.state.store.Store` and exposes a typed
register/get/update/clear facade over it. Records are pydantic models on
the way in and out; the store itself only ever holds plain dicts.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from pynai.exceptions import StateValidationError, StoreError
from pynai.state.store import Store, StoreSnapshot, Subscriber

RecordT = TypeVar("RecordT", bound=BaseModel)


def validate_record_id(record_id: Any, label: str) -> str:
    if not isinstance(record_id, str) or not record_id:
        raise StateValidationError(f"{label} ID must be a non-empty string")
    return record_id


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(loc) for loc in error.get("loc", ())) or "record"
        parts.append(f"{location}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


class RecordManager(Generic[RecordT]):
    """Typed facade over an ``{id: record}`` slice of a store."""

    record_type: ClassVar[type[BaseModel]]
    slice_key: ClassVar[str]
    label: ClassVar[str]

    def __init__(self, extra_state: Mapping[str, Any] | None = None) -> None:
        initial: dict[str, Any] = {self.slice_key: {}}
        if extra_state:
            initial.update(extra_state)
        self._store = Store(initial)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _not_found(self, record_id: str) -> StoreError:
        return StoreError(f"{self.label} '{record_id}' not found")

    def _extra_updates(self, records: dict[str, Any]) -> dict[str, Any]:
        """Additional store paths committed together with the slice."""
        return {}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build(self, record_id: str, data: Mapping[str, Any]) -> RecordT:
        try:
            record = self.record_type.model_validate({**data, "id": record_id})
        except ValidationError as exc:
            raise StateValidationError(f"Invalid {self.label.lower()} data: {_describe(exc)}") from exc
        return record  # type: ignore[return-value]

    def _raw(self) -> dict[str, Any]:
        return self._store.get(self.slice_key)

    def _commit(self, records: dict[str, Any]) -> None:
        updates: dict[str, Any] = {self.slice_key: records}
        updates.update(self._extra_updates(records))
        self._store.update(updates)

    def _coerce(self, data: Any) -> dict[str, Any]:
        if isinstance(data, BaseModel):
            return data.model_dump()
        if isinstance(data, Mapping):
            return dict(data)
        raise StateValidationError(f"{self.label} data must be a mapping")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register(self, record_id: str, data: Mapping[str, Any] | BaseModel) -> str:
        """Add (or replace) a record; returns its id."""
        validate_record_id(record_id, self.label)
        record = self._build(record_id, self._coerce(data))
        records = self._raw()
        records[record_id] = record.model_dump()
        self._commit(records)
        return record_id

    def update(self, record_id: str, partial: Mapping[str, Any]) -> RecordT:
        """Merge *partial* into an existing record."""
        validate_record_id(record_id, self.label)
        if not isinstance(partial, Mapping):
            raise StateValidationError("Updates must be a mapping")
        records = self._raw()
        current = records.get(record_id)
        if current is None:
            raise self._not_found(record_id)
        record = self._build(record_id, {**current, **partial})
        records[record_id] = record.model_dump()
        self._commit(records)
        return record

    def get(self, record_id: str) -> RecordT:
        validate_record_id(record_id, self.label)
        data = self._raw().get(record_id)
        if data is None:
            raise self._not_found(record_id)
        return self.record_type.model_validate(data)  # type: ignore[return-value]

    def has(self, record_id: str) -> bool:
        if not isinstance(record_id, str) or not record_id:
            return False
        return record_id in self._raw()

    def get_all(self) -> dict[str, RecordT]:
        return {
            record_id: self.record_type.model_validate(data)  # type: ignore[misc]
            for record_id, data in self._raw().items()
        }

    def count(self) -> int:
        return len(self._raw())

    def clear(self, record_id: str) -> bool:
        """Remove a record. Returns ``False`` if it was not registered."""
        validate_record_id(record_id, self.label)
        records = self._raw()
        if records.pop(record_id, None) is None:
            return False
        self._commit(records)
        return True

    def clear_all(self) -> None:
        self._commit({})

    def subscribe(self, callback: Subscriber) -> Callable[[], bool]:
        """Fire *callback* on every register/update/clear."""
        return self._store.subscribe(self.slice_key, callback)

    def snapshot(self) -> StoreSnapshot:
        return self._store.snapshot()

    def restore(self, snapshot: StoreSnapshot) -> None:
        self._store.restore(snapshot)

    def debug(self) -> dict[str, Any]:
        records = self._raw()
        return {
            "active_count": len(records),
            f"{self.label.lower()}_ids": sorted(records),
        }
