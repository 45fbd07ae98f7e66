"""Human-readable activity journal of cleaning runs."""

from __future__ import annotations

import logging
import time
from pathlib import Path

log = logging.getLogger(__name__)

# Shared by every journal; records go straight to each journal's own handler.
_journal_log = logging.getLogger("autoqac.journal")
_journal_log.propagate = False

_SECONDS_PER_DAY = 86400


class Journal:
    """Append-only text journal with its own file handler.

    The journal is separate from the application log: it always records
    at INFO level, regardless of CLI verbosity, and lives in its own file.
    A journal older than ``expiration_days`` is deleted when opened.
    Use as a context manager or call :meth:`close` to release the file.
    """

    def __init__(self, path: Path | None, *, expiration_days: int = 7, enabled: bool = True) -> None:
        self.path = path
        self.enabled = enabled and path is not None
        self._handler: logging.Handler | None = None

        if self.enabled:
            expired = self._expire(expiration_days)
            self._open()
            if expired:
                self.write(f"Journal expired after {expiration_days} days and was cleared.")

    def _expire(self, expiration_days: int) -> bool:
        try:
            age = time.time() - self.path.stat().st_mtime
        except FileNotFoundError:
            return False
        except OSError as e:
            log.warning("Cannot stat journal %s: %s", self.path, e)
            return False
        if age <= expiration_days * _SECONDS_PER_DAY:
            return False
        try:
            self.path.unlink()
        except OSError as e:
            log.warning("Could not expire journal %s: %s", self.path, e)
            return False
        return True

    def _open(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.path, encoding="utf-8", delay=True)
        except OSError as e:
            log.warning("Journal disabled, cannot open %s: %s", self.path, e)
            self.enabled = False
            return
        handler.setFormatter(logging.Formatter("%(asctime)s  %(message)s", "%Y-%m-%d %H:%M:%S"))
        self._handler = handler

    def write(self, message: str, *args: object) -> None:
        """Append one line (%-style formatting, like ``logging``)."""
        if self.enabled and self._handler is not None:
            record = _journal_log.makeRecord(
                _journal_log.name, logging.INFO, __file__, 0, message, args, None
            )
            self._handler.handle(record)

    def close(self) -> None:
        if self._handler is not None:
            self._handler.close()
            self._handler = None

    def __enter__(self) -> Journal:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class NullJournal(Journal):
    """Journal that records nothing."""

    def __init__(self) -> None:
        super().__init__(None, enabled=False)
