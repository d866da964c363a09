"""Set of documents the engine is enabled for."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pynai.exceptions import StateValidationError
from pynai.host import DocumentId
from pynai.state.store import Store, StoreSnapshot, Subscriber


def _validate_document_id(document_id: Any) -> None:
    if isinstance(document_id, bool):
        raise StateValidationError("Document id must be a non-negative number or a non-empty string")
    if isinstance(document_id, int):
        if document_id < 0:
            raise StateValidationError("Document id must be a non-negative number or a non-empty string")
        return
    if isinstance(document_id, str) and document_id:
        return
    raise StateValidationError("Document id must be a non-negative number or a non-empty string")


class BufferManager:
    """Membership-only set of activated document ids."""

    def __init__(self) -> None:
        self._store = Store({"activated_buffers": {}})

    def activate(self, document_id: DocumentId) -> None:
        _validate_document_id(document_id)
        buffers = self._store.get("activated_buffers")
        if buffers.get(document_id):
            return
        buffers[document_id] = True
        self._store.set("activated_buffers", buffers)

    def deactivate(self, document_id: DocumentId) -> bool:
        _validate_document_id(document_id)
        buffers = self._store.get("activated_buffers")
        if buffers.pop(document_id, None) is None:
            return False
        self._store.set("activated_buffers", buffers)
        return True

    def is_activated(self, document_id: DocumentId) -> bool:
        try:
            _validate_document_id(document_id)
        except StateValidationError:
            return False
        return bool(self._store.get("activated_buffers").get(document_id))

    def get_all(self) -> set[DocumentId]:
        return set(self._store.get("activated_buffers"))

    def clear_all(self) -> None:
        self._store.set("activated_buffers", {})

    def subscribe(self, callback: Subscriber) -> Callable[[], bool]:
        return self._store.subscribe("activated_buffers", callback)

    def snapshot(self) -> StoreSnapshot:
        return self._store.snapshot()

    def restore(self, snapshot: StoreSnapshot) -> None:
        self._store.restore(snapshot)

    def debug(self) -> dict[str, Any]:
        buffers = self.get_all()
        return {
            "activated_count": len(buffers),
            "document_ids": sorted(buffers, key=str),
        }
