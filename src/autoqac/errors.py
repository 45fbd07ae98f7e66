"""Exception types raised by the cleaning core."""

from __future__ import annotations


class AutoQacError(Exception):
    """Base class for all autoqac errors."""


class ConfigurationError(AutoQacError):
    """Raised when the xEdit executable or another setting is unusable.

    Detected at run start it aborts the whole run; detected while
    launching a single plugin it only fails that plugin.
    """


class SpawnError(AutoQacError):
    """Raised when the operating system refuses to start xEdit."""


class ClassificationError(AutoQacError):
    """Raised when the xEdit log exists but cannot be read."""


class PersistenceError(AutoQacError):
    """Raised when a data file (skip list, history) cannot be written."""


class RunInProgressError(AutoQacError):
    """Raised when a second cleaning run is started on a busy orchestrator."""
