"""Progress events emitted while a run is in flight."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Position within the queue plus a message for the user."""

    current: int
    total: int
    message: str

    @property
    def fraction(self) -> float:
        return self.current / self.total if self.total else 1.0
