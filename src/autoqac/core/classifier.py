"""Classification of xEdit log output."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from autoqac.errors import ClassificationError
from autoqac.models.outcome import OutcomeRecord

log = logging.getLogger(__name__)

UNDELETE_MARKER = "Undeleting:"
REMOVAL_MARKER = "Removing:"
NAVMESH_MARKER = "Skipping:"
PARTIAL_FORM_MARKER = "Making Partial Form:"

# Substrings xEdit writes to its exception log when a master is missing.
FATAL_SIGNATURES = (
    "which can not be found",
    "which it does not have",
)


def matches_fatal_signature(exception_log: Path) -> bool:
    """Check whether the exception log reports a missing requirement."""
    try:
        content = exception_log.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return False
    except OSError as e:
        log.debug("Cannot read exception log %s: %s", exception_log, e)
        return False
    return any(signature in content for signature in FATAL_SIGNATURES)


def clear_logs(paths: tuple[Path, ...] | list[Path], *, preserve: bool = False) -> list[str]:
    """Delete xEdit log files.

    Returns a warning per file that could not be removed. Nothing is
    deleted when *preserve* is set (debug mode).
    """
    if preserve:
        return []
    warnings: list[str] = []
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning("Could not clear xEdit log %s: %s", path, e)
            warnings.append(f"Unable to clear xEdit log {path}: {e}")
    return warnings


class OutcomeClassifier:
    """Turns an xEdit ``-QAC`` log into an :class:`OutcomeRecord`.

    The classification depends only on the log's content: the same file
    always yields the same flags.
    """

    def __init__(self, appear_timeout: float = 1.0, poll: float = 0.1) -> None:
        self.appear_timeout = appear_timeout
        self.poll = poll

    def _wait_for(self, path: Path) -> bool:
        """Give xEdit a moment to flush its log after exiting."""
        deadline = time.monotonic() + self.appear_timeout
        while not path.exists():
            if time.monotonic() >= deadline:
                return False
            time.sleep(self.poll)
        return True

    def classify(self, log_path: Path) -> OutcomeRecord:
        """Classify the log at *log_path*.

        A missing log means xEdit had nothing to report.

        Raises:
            ClassificationError: The log exists but could not be read.
        """
        if not self._wait_for(log_path):
            log.debug("No xEdit log at %s", log_path)
            return OutcomeRecord.from_flags()

        undeletes = removals = navmesh = partial = False
        try:
            with open(log_path, encoding="utf-8", errors="replace") as f:
                for line in f:
                    if UNDELETE_MARKER in line:
                        undeletes = True
                    if REMOVAL_MARKER in line:
                        removals = True
                    if NAVMESH_MARKER in line:
                        navmesh = True
                    if PARTIAL_FORM_MARKER in line:
                        partial = True
        except OSError as e:
            raise ClassificationError(f"Cannot read xEdit log {log_path}: {e}") from e

        return OutcomeRecord.from_flags(
            undeletes=undeletes,
            removals=removals,
            navmesh=navmesh,
            partial_forms=partial,
        )
