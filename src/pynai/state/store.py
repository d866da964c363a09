"""Path-addressable reactive state container.

Every manager in :mod:`pynai.state` keeps its slice in one of these.
Values never leave the store by reference: reads, writes and subscriber
notifications all work on deep copies.
"""

from __future__ import annotations

import copy
import itertools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pynai.exceptions import PathNotFoundError, SnapshotError, StateValidationError, StoreError

_logger = logging.getLogger(__name__)

#: Subscribing to this path receives every committed change.
WILDCARD = "*"

Validator = Callable[[Any], None]
Subscriber = Callable[[Any, Any, str], None]

_MISSING = object()


def _split_path(path: str) -> list[str]:
    if not isinstance(path, str) or not path:
        raise StoreError("Path must be a non-empty string")
    keys = path.split(".")
    if any(not key for key in keys):
        raise StoreError(f"Path '{path}' contains an empty segment")
    return keys


def _get_nested(tree: dict[str, Any], path: str) -> Any:
    """Resolve a dotted path, raising :class:`PathNotFoundError` if absent."""
    current: Any = tree
    for key in _split_path(path):
        if not isinstance(current, dict):
            raise PathNotFoundError(f"Cannot traverse non-mapping at key '{key}'", path=path)
        if key not in current:
            raise PathNotFoundError(f"Key '{key}' not found in path '{path}'", path=path)
        current = current[key]
    return current


def _peek(tree: dict[str, Any], path: str) -> Any:
    try:
        return _get_nested(tree, path)
    except PathNotFoundError:
        return _MISSING


def _set_nested(tree: dict[str, Any], path: str, value: Any) -> None:
    """Assign *value* at *path*, creating intermediate mappings as needed."""
    keys = _split_path(path)
    current = tree
    for key in keys[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[keys[-1]] = value


def _run_validator(validator: Validator, path: str, value: Any) -> None:
    try:
        validator(value)
    except (ValueError, TypeError) as exc:
        message = str(exc) or "Validation failed"
        raise StateValidationError(message, path=path) from exc


@dataclass(frozen=True)
class StoreSnapshot:
    """Opaque copy of a store's whole tree, produced by :meth:`Store.snapshot`."""

    state: dict[str, Any]


@dataclass(frozen=True, slots=True)
class _Subscription:
    id: int
    path: str
    callback: Subscriber


class Store:
    """Reactive key-path store.

    Paths are dot separated (``"ui.current_provider"``). Subscribers are keyed
    by exact path or :data:`WILDCARD` and are invoked synchronously after a
    change is committed with ``(new_value, old_value, path)``.
    """

    def __init__(self, initial_state: Mapping[str, Any] | None = None) -> None:
        self._initial: dict[str, Any] = copy.deepcopy(dict(initial_state or {}))
        self._state: dict[str, Any] = copy.deepcopy(self._initial)
        self._subscribers: dict[str, list[_Subscription]] = {}
        self._ids = itertools.count(1)

    def get(self, path: str | None = None) -> Any:
        """Return a deep copy of the value at *path* (or of the whole tree)."""
        if path is None:
            return copy.deepcopy(self._state)
        return copy.deepcopy(_get_nested(self._state, path))

    def has(self, path: str) -> bool:
        return _peek(self._state, path) is not _MISSING

    def set(self, path: str, value: Any, validator: Validator | None = None) -> None:
        """Validate and commit a single value."""
        _split_path(path)
        if validator is not None:
            _run_validator(validator, path, value)

        old_value = _peek(self._state, path)
        _set_nested(self._state, path, copy.deepcopy(value))
        self._notify(path, value, None if old_value is _MISSING else old_value)

    def update(self, updates: Mapping[str, Any], validator: Validator | None = None) -> None:
        """Commit several paths at once, or none of them.

        Every entry is validated before anything is written; if applying
        still fails half way the pre-update snapshot is restored.
        """
        if not isinstance(updates, Mapping):
            raise StateValidationError("Updates must be a mapping")

        items = list(updates.items())
        for path, value in items:
            _split_path(path)
            if validator is not None:
                try:
                    _run_validator(validator, path, value)
                except StateValidationError as exc:
                    raise StateValidationError(f"Failed to update '{path}': {exc}", path=path) from exc

        before = self.snapshot()
        old_values: list[Any] = []
        try:
            for path, value in items:
                old_values.append(_peek(self._state, path))
                _set_nested(self._state, path, copy.deepcopy(value))
        except Exception:
            self._state = copy.deepcopy(before.state)
            raise

        for (path, value), old_value in zip(items, old_values, strict=True):
            self._notify(path, value, None if old_value is _MISSING else old_value)

    def subscribe(self, path: str, callback: Subscriber) -> Callable[[], bool]:
        """Register *callback* for *path*; returns an unsubscribe function."""
        if not callable(callback):
            raise StoreError("Callback must be callable")
        if path != WILDCARD:
            _split_path(path)

        subscription = _Subscription(id=next(self._ids), path=path, callback=callback)
        self._subscribers.setdefault(path, []).append(subscription)

        def _unsubscribe() -> bool:
            return self.unsubscribe(subscription.id)

        return _unsubscribe

    def unsubscribe(self, subscription_id: int) -> bool:
        for path, subscribers in self._subscribers.items():
            for index, subscription in enumerate(subscribers):
                if subscription.id == subscription_id:
                    del subscribers[index]
                    if not subscribers:
                        del self._subscribers[path]
                    return True
        return False

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(state=copy.deepcopy(self._state))

    def restore(self, snapshot: StoreSnapshot) -> None:
        """Replace the whole tree with *snapshot*.

        Exact-path subscribers are told about paths whose value changed;
        wildcard subscribers get one notification for the whole tree.
        """
        if not isinstance(snapshot, StoreSnapshot):
            raise SnapshotError("Snapshot must be a StoreSnapshot")

        previous = self._state
        self._state = copy.deepcopy(snapshot.state)

        for path in [p for p in self._subscribers if p != WILDCARD]:
            old_value = _peek(previous, path)
            new_value = _peek(self._state, path)
            if old_value != new_value:
                self._notify_path(
                    path,
                    path,
                    None if new_value is _MISSING else new_value,
                    None if old_value is _MISSING else old_value,
                )
        self._notify_path(WILDCARD, WILDCARD, self._state, previous)

    def reset(self) -> None:
        """Return to the initial state and drop every subscriber."""
        self._state = copy.deepcopy(self._initial)
        self._subscribers = {}

    def debug(self) -> dict[str, Any]:
        return {
            "state_keys": sorted(self._state),
            "subscriber_count": sum(len(subs) for subs in self._subscribers.values()),
        }

    def _notify(self, path: str, new_value: Any, old_value: Any) -> None:
        self._notify_path(path, path, new_value, old_value)
        self._notify_path(WILDCARD, path, new_value, old_value)

    def _notify_path(self, key: str, path: str, new_value: Any, old_value: Any) -> None:
        # Copy the list: callbacks may unsubscribe while we iterate.
        for subscription in list(self._subscribers.get(key, ())):
            try:
                subscription.callback(copy.deepcopy(new_value), copy.deepcopy(old_value), path)
            except Exception:
                _logger.warning("Store subscriber for '%s' failed", key, exc_info=True)
