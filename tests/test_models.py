"""Tests for outcome records and run results."""

from __future__ import annotations

import pytest

from autoqac.models.job import PluginState
from autoqac.models.outcome import Disposition, FailureReason, OutcomeRecord
from autoqac.models.progress import ProgressEvent
from autoqac.models.run_result import RunResult


class TestOutcomeRecord:
    def test_no_flags_is_nothing_to_clean(self):
        outcome = OutcomeRecord.from_flags()
        assert outcome.disposition is Disposition.NOTHING_TO_CLEAN
        assert outcome.message == "Nothing to clean"

    def test_any_flag_is_cleaned(self):
        outcome = OutcomeRecord.from_flags(navmesh=True)
        assert outcome.disposition is Disposition.CLEANED
        assert outcome.message == "Found Deleted Navmeshes"

    def test_failed_message(self):
        outcome = OutcomeRecord.failed(FailureReason.SPAWN_ERROR, "Access is denied")
        assert outcome.flags == (False, False, False, False)
        assert outcome.message == "Failed: xEdit could not be started (Access is denied)"

    def test_immutable(self):
        outcome = OutcomeRecord.from_flags(undeletes=True)
        with pytest.raises(AttributeError):
            outcome.disposition = Disposition.FAILED


class TestRunResult:
    def test_record_categorises(self):
        result = RunResult(game="fo4", queued=3)
        result.record("A.esp", OutcomeRecord.from_flags(undeletes=True, partial_forms=True))
        result.record("B.esp", OutcomeRecord.from_flags())
        result.record("C.esp", OutcomeRecord.failed(FailureReason.TIMED_OUT))

        assert result.processed == 3
        assert result.cleaned == 1
        assert result.cleaned_udr == ["A.esp"]
        assert result.created_partial_forms == ["A.esp"]
        assert result.failed == ["C.esp"]
        assert result.cleaned_itm == []

    def test_outcome_recorded_once(self):
        result = RunResult()
        result.record("A.esp", OutcomeRecord.from_flags())
        with pytest.raises(ValueError, match="already has a recorded outcome"):
            result.record("a.ESP", OutcomeRecord.from_flags(removals=True))
        assert result.processed == 1
        assert result.has_outcome("A.esp")

    def test_categories_order(self):
        titles = [title for title, _ in RunResult().categories()]
        assert titles[0] == "Plugins that failed cleaning"
        assert titles[3] == "Caution: Plugins with Deleted Navmeshes"
        assert len(titles) == 5

    def test_to_dict(self):
        result = RunResult(game="sse", queued=1)
        result.record("A.esp", OutcomeRecord.failed(FailureReason.UNRESPONSIVE))
        data = result.to_dict()
        assert data["failed"] == ["A.esp"]
        assert data["outcomes"]["A.esp"] == {"disposition": "failed", "reason": "unresponsive"}

    def test_plugin_states(self):
        result = RunResult(game="sse", queued=2)
        result.skip("Update.esm")
        result.record("A.esp", OutcomeRecord.from_flags(removals=True))
        result.record("B.esp", OutcomeRecord.failed(FailureReason.TIMED_OUT))

        assert result.states == {
            "Update.esm": PluginState.SKIPPED,
            "A.esp": PluginState.CLASSIFIED,
            "B.esp": PluginState.FAILED,
        }
        assert result.skipped == ["Update.esm"]
        assert not result.has_outcome("Update.esm")
        assert result.to_dict()["skipped"] == ["Update.esm"]


class TestProgressEvent:
    def test_fraction(self):
        assert ProgressEvent(1, 4, "Cleaning A.esp...").fraction == 0.25
        assert ProgressEvent(0, 0, "Starting cleaning process...").fraction == 1.0
