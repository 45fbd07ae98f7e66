"""Cleaning job bookkeeping."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class PluginState(str, Enum):
    """Per-run lifecycle of a plugin."""

    QUEUED = "queued"
    RUNNING = "running"
    CLASSIFIED = "classified"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class CleaningJob:
    """One xEdit invocation for one plugin.

    ``started_at`` is a ``time.monotonic()`` reading used for timeout
    arithmetic; ``started_wall`` is the UTC start time shown in the journal.
    """

    plugin: str
    command: list[str]
    log_path: Path
    exception_log_path: Path
    timeout: float
    started_at: float | None = None
    started_wall: datetime | None = None
    process: subprocess.Popen | None = field(default=None, repr=False)
    state: PluginState = PluginState.QUEUED

    @property
    def log_paths(self) -> tuple[Path, Path]:
        return self.log_path, self.exception_log_path

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None
