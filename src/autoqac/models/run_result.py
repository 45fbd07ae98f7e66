"""Run-scoped counters and end-of-run summary."""

from __future__ import annotations

from dataclasses import dataclass, field

from autoqac.models.job import PluginState
from autoqac.models.outcome import Disposition, OutcomeRecord
from autoqac.utils import plugin_key


@dataclass(slots=True)
class RunResult:
    """Counters and categorised plugin lists for one cleaning run.

    Created fresh for every run and only ever grown while the run is
    in flight.
    """

    game: str = ""
    queued: int = 0
    processed: int = 0
    cleaned: int = 0
    failed: list[str] = field(default_factory=list)
    cleaned_udr: list[str] = field(default_factory=list)
    cleaned_itm: list[str] = field(default_factory=list)
    found_navmesh: list[str] = field(default_factory=list)
    created_partial_forms: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    outcomes: dict[str, OutcomeRecord] = field(default_factory=dict)
    states: dict[str, PluginState] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    cancelled: bool = False
    elapsed: float = 0.0
    _seen: set[str] = field(default_factory=set, repr=False)

    def record(self, plugin: str, outcome: OutcomeRecord) -> None:
        """Account for the single outcome of *plugin*."""
        key = plugin_key(plugin)
        if key in self._seen:
            raise ValueError(f"Plugin '{plugin}' already has a recorded outcome")
        self._seen.add(key)
        self.outcomes[plugin] = outcome
        self.processed += 1

        if outcome.disposition is Disposition.FAILED:
            self.states[plugin] = PluginState.FAILED
            self.failed.append(plugin)
            return
        self.states[plugin] = PluginState.CLASSIFIED
        if outcome.disposition is Disposition.CLEANED:
            self.cleaned += 1
        if outcome.produced_undeletes:
            self.cleaned_udr.append(plugin)
        if outcome.produced_removals:
            self.cleaned_itm.append(plugin)
        if outcome.found_deleted_navmesh:
            self.found_navmesh.append(plugin)
        if outcome.produced_partial_forms:
            self.created_partial_forms.append(plugin)

    def skip(self, plugin: str) -> None:
        """Note a plugin left out of the run by the skip list. It gets no outcome."""
        self.skipped.append(plugin)
        self.states[plugin] = PluginState.SKIPPED

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def has_outcome(self, plugin: str) -> bool:
        return plugin_key(plugin) in self._seen

    def categories(self) -> list[tuple[str, list[str]]]:
        """Summary sections in display order, empty ones included."""
        return [
            ("Plugins that failed cleaning", self.failed),
            ("Plugins with Undisabled Records cleaned", self.cleaned_udr),
            ("Plugins with Identical To Master Records cleaned", self.cleaned_itm),
            ("Caution: Plugins with Deleted Navmeshes", self.found_navmesh),
            ("Plugins with ITMs converted to Partial Forms", self.created_partial_forms),
        ]

    def to_dict(self) -> dict:
        return {
            "game": self.game,
            "queued": self.queued,
            "processed": self.processed,
            "cleaned": self.cleaned,
            "cancelled": self.cancelled,
            "elapsed": round(self.elapsed, 2),
            "failed": list(self.failed),
            "cleaned_udr": list(self.cleaned_udr),
            "cleaned_itm": list(self.cleaned_itm),
            "found_navmesh": list(self.found_navmesh),
            "created_partial_forms": list(self.created_partial_forms),
            "skipped": list(self.skipped),
            "warnings": list(self.warnings),
            "outcomes": {
                name: {
                    "disposition": o.disposition.value,
                    "reason": o.reason.value if o.reason else None,
                }
                for name, o in self.outcomes.items()
            },
        }
