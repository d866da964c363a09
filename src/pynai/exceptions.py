"""Custom exception hierarchy for pynai."""

from __future__ import annotations


class NaiError(Exception):
    """Base exception for all pynai errors."""


class NaiConfigError(NaiError):
    """Invalid or missing configuration."""


class StoreError(NaiError):
    """State store failure."""


class PathNotFoundError(StoreError, KeyError):
    """A dotted store path does not resolve to a value."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0]) if self.args else ""


class StateValidationError(StoreError, ValueError):
    """A validator rejected a value; nothing was committed."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class SnapshotError(StoreError):
    """Restore was given something that is not a store snapshot."""


class RequestNotFoundError(StoreError, KeyError):
    """No request is registered under the given id."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request '{request_id}' not found")

    def __str__(self) -> str:
        return str(self.args[0])


class IndicatorNotFoundError(StoreError, KeyError):
    """No indicator is registered under the given id."""

    def __init__(self, indicator_id: str) -> None:
        self.indicator_id = indicator_id
        super().__init__(f"Indicator '{indicator_id}' not found")

    def __str__(self) -> str:
        return str(self.args[0])


class DocumentError(NaiError):
    """Invalid read or write against a host document."""


class DocumentClosedError(DocumentError):
    """The document is no longer valid (closed by the host)."""


class BlockKindError(NaiError):
    """A block kind is malformed or registered twice."""


class BlockOperationError(NaiError):
    """A block's operation failed with a readable message.

    Kinds raise this from ``execute``; the message is written into the
    block's error region verbatim.
    """

    def __init__(self, message: str, *, target: str | None = None) -> None:
        self.target = target
        super().__init__(message)
