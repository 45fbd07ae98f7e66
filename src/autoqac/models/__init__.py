"""autoqac data models."""

from autoqac.models.job import CleaningJob, PluginState
from autoqac.models.outcome import Disposition, FailureReason, OutcomeRecord
from autoqac.models.progress import ProgressEvent
from autoqac.models.run_result import RunResult

__all__ = [
    "CleaningJob",
    "Disposition",
    "FailureReason",
    "OutcomeRecord",
    "PluginState",
    "ProgressEvent",
    "RunResult",
]
