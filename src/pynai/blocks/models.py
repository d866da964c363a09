"""Block value types."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Phase(StrEnum):
    UNEXPANDED = "unexpanded"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.ERROR)


def _spelled(line: str, marker: str) -> bool:
    return line == marker or line.startswith(marker + " ")


class BlockMarkers(BaseModel):
    """The four spellings of one kind's marker line.

    ``completed`` and ``error`` may be followed by a space and free text
    (usually a timestamp); ``request`` and ``progress`` must match exactly.
    """

    model_config = ConfigDict(frozen=True)

    request: str
    progress: str
    completed: str
    error: str

    def phase_of(self, line: str) -> Phase | None:
        stripped = line.strip()
        if stripped == self.request:
            return Phase.UNEXPANDED
        if stripped == self.progress:
            return Phase.IN_PROGRESS
        if _spelled(stripped, self.error):
            return Phase.ERROR
        if _spelled(stripped, self.completed):
            return Phase.COMPLETED
        return None


class Block(BaseModel):
    """A marker-delimited region ``[start, end)`` as seen by one scan."""

    model_config = ConfigDict(frozen=True)

    kind: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    phase: Phase
    target: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    @property
    def size(self) -> int:
        return self.end - self.start
