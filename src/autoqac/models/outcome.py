"""Per-plugin cleaning outcome."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Disposition(str, Enum):
    """Terminal disposition of one cleaning job."""

    CLEANED = "cleaned"
    NOTHING_TO_CLEAN = "nothing_to_clean"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a job ended in ``Disposition.FAILED``."""

    TIMED_OUT = "timed_out"
    UNRESPONSIVE = "unresponsive"
    MISSING_REQUIREMENT = "missing_requirement"
    SPAWN_ERROR = "spawn_error"
    CONFIGURATION = "configuration"
    CLASSIFICATION_ERROR = "classification_error"
    CANCELLED = "cancelled"
    ERROR = "error"


_REASON_MESSAGES = {
    FailureReason.TIMED_OUT: "xEdit timed out (cleaning took too long)",
    FailureReason.UNRESPONSIVE: "xEdit stopped responding (plugin disabled or missing requirements)",
    FailureReason.MISSING_REQUIREMENT: "plugin is empty or has missing requirements",
    FailureReason.SPAWN_ERROR: "xEdit could not be started",
    FailureReason.CONFIGURATION: "xEdit executable is not usable",
    FailureReason.CLASSIFICATION_ERROR: "xEdit log could not be read",
    FailureReason.CANCELLED: "cancelled by user",
    FailureReason.ERROR: "unexpected error",
}

# Failures that mean the plugin itself is the problem, so retrying is pointless.
LEARNABLE_FAILURES = frozenset({FailureReason.UNRESPONSIVE, FailureReason.MISSING_REQUIREMENT})


@dataclass(frozen=True, slots=True)
class OutcomeRecord:
    """What xEdit did to one plugin.

    Instances are immutable, so the disposition of a job is fixed the
    moment its record is created.
    """

    disposition: Disposition
    produced_undeletes: bool = False
    produced_removals: bool = False
    found_deleted_navmesh: bool = False
    produced_partial_forms: bool = False
    reason: FailureReason | None = None
    detail: str = ""

    @classmethod
    def from_flags(
        cls,
        *,
        undeletes: bool = False,
        removals: bool = False,
        navmesh: bool = False,
        partial_forms: bool = False,
    ) -> OutcomeRecord:
        """Build a CLEANED or NOTHING_TO_CLEAN record from log flags."""
        found = undeletes or removals or navmesh or partial_forms
        return cls(
            disposition=Disposition.CLEANED if found else Disposition.NOTHING_TO_CLEAN,
            produced_undeletes=undeletes,
            produced_removals=removals,
            found_deleted_navmesh=navmesh,
            produced_partial_forms=partial_forms,
        )

    @classmethod
    def failed(cls, reason: FailureReason, detail: str = "") -> OutcomeRecord:
        return cls(disposition=Disposition.FAILED, reason=reason, detail=detail)

    @property
    def flags(self) -> tuple[bool, bool, bool, bool]:
        return (
            self.produced_undeletes,
            self.produced_removals,
            self.found_deleted_navmesh,
            self.produced_partial_forms,
        )

    @property
    def message(self) -> str:
        """Short human-readable summary used in progress and journal lines."""
        match self.disposition:
            case Disposition.CLEANED:
                actions = []
                if self.produced_undeletes:
                    actions.append("Cleaned UDRs")
                if self.produced_removals:
                    actions.append("Cleaned ITMs")
                if self.found_deleted_navmesh:
                    actions.append("Found Deleted Navmeshes")
                if self.produced_partial_forms:
                    actions.append("Created Partial Forms")
                return ", ".join(actions)
            case Disposition.NOTHING_TO_CLEAN:
                return "Nothing to clean"
            case _:
                text = _REASON_MESSAGES.get(self.reason, "failed")
                return f"Failed: {text}" + (f" ({self.detail})" if self.detail else "")
