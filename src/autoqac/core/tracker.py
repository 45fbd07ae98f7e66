"""Tracks cleaning results across runs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from autoqac.errors import PersistenceError
from autoqac.models.outcome import Disposition
from autoqac.models.run_result import RunResult
from autoqac.storage import load_history, save_history
from autoqac.utils import plugin_key

log = logging.getLogger(__name__)


class Tracker:
    """Tracks and persists cleaning statistics."""

    def save_run(self, result: RunResult) -> bool:
        """Append *result* to the history file.

        Returns False when the history could not be written; the failure
        is logged and also added to the run's warnings.
        """
        if not result.outcomes:
            return True

        history = load_history()
        history["sessions"].append(self._build_session_entry(result))
        try:
            save_history(history)
        except PersistenceError as e:
            log.warning("Run history not saved: %s", e)
            result.warn(str(e))
            return False

        log.info("Saved run: %d processed, %d cleaned", result.processed, result.cleaned)
        return True

    def last_cleaned(self, plugin: str, game: str) -> str | None:
        """ISO timestamp of the last run that cleaned *plugin*, or None."""
        key = plugin_key(plugin)
        for session in reversed(load_history().get("sessions", [])):
            if session.get("game") != game:
                continue
            for detail in session.get("details", []):
                if plugin_key(detail.get("plugin", "")) == key and detail.get("disposition") == Disposition.CLEANED.value:
                    return session["timestamp"]
        return None

    def get_stats(self, period: str = "all") -> dict[str, Any]:
        """Get aggregated statistics for a time period.

        Args:
            period: One of 'today', 'week', 'month', 'all'.
        """
        history = load_history()
        all_sessions = history.get("sessions", [])

        match period:
            case "today":
                cutoff = _start_of_today()
            case "week":
                cutoff = _start_of_today() - timedelta(days=7)
            case "month":
                cutoff = _start_of_today() - timedelta(days=30)
            case _:
                cutoff = None

        if cutoff is not None:
            sessions = [
                s for s in all_sessions
                if datetime.fromisoformat(s["timestamp"]) >= cutoff
            ]
        else:
            sessions = all_sessions

        return {
            "period": period,
            "session_count": len(sessions),
            "processed": sum(s.get("processed", 0) for s in sessions),
            "cleaned": sum(s.get("cleaned", 0) for s in sessions),
            "failed": sum(_count(s, Disposition.FAILED) for s in sessions),
            "lifetime_cleaned": sum(s.get("cleaned", 0) for s in all_sessions),
            "per_plugin": self._aggregate_plugin_stats(sessions),
        }

    @staticmethod
    def _build_session_entry(result: RunResult) -> dict[str, Any]:
        """Build a session record from a run result."""
        details = [
            {
                "plugin": name,
                "disposition": outcome.disposition.value,
                "reason": outcome.reason.value if outcome.reason else None,
                "udr": outcome.produced_undeletes,
                "itm": outcome.produced_removals,
                "nvm": outcome.found_deleted_navmesh,
                "partial_forms": outcome.produced_partial_forms,
            }
            for name, outcome in result.outcomes.items()
        ]
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "game": result.game,
            "processed": result.processed,
            "cleaned": result.cleaned,
            "cancelled": result.cancelled,
            "details": details,
        }

    @staticmethod
    def _aggregate_plugin_stats(sessions: list[dict[str, Any]]) -> dict[str, dict[str, int]]:
        """Aggregate per-plugin statistics across sessions."""
        totals: dict[str, dict[str, int]] = {}
        for session in sessions:
            for detail in session.get("details", []):
                name = detail["plugin"]
                if name not in totals:
                    totals[name] = {"runs": 0, "cleaned": 0, "failed": 0}
                totals[name]["runs"] += 1
                if detail.get("disposition") == Disposition.CLEANED.value:
                    totals[name]["cleaned"] += 1
                elif detail.get("disposition") == Disposition.FAILED.value:
                    totals[name]["failed"] += 1
        return totals


def _count(session: dict[str, Any], disposition: Disposition) -> int:
    """Count details of a session with the given disposition."""
    return sum(1 for d in session.get("details", []) if d.get("disposition") == disposition.value)


def _start_of_today() -> datetime:
    """Return the start of the current UTC day."""
    now = datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
