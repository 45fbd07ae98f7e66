"""Sequential cleaning of a plugin queue with xEdit."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterable

from autoqac.core.classifier import OutcomeClassifier, clear_logs, matches_fatal_signature
from autoqac.core.journal import Journal, NullJournal
from autoqac.core.skiplist import SkipListRegistry
from autoqac.core.supervisor import ProcessSupervisor
from autoqac.core.watchdog import HealthWatchdog
from autoqac.errors import (
    ClassificationError,
    ConfigurationError,
    RunInProgressError,
    SpawnError,
)
from autoqac.games import GameMode
from autoqac.models.job import CleaningJob, PluginState
from autoqac.models.outcome import LEARNABLE_FAILURES, Disposition, FailureReason, OutcomeRecord
from autoqac.models.progress import ProgressEvent
from autoqac.models.run_result import RunResult
from autoqac.settings import CleaningConfig
from autoqac.utils import format_elapsed, is_plugin_file, plugin_key

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
ResultCallback = Callable[[str, OutcomeRecord], None]


class CleaningOrchestrator:
    """Runs xEdit over a plugin queue, one plugin at a time.

    xEdit and its two log files are single-instance resources, so plugins
    are never cleaned in parallel. Only one :meth:`run` may be in flight
    per orchestrator.
    """

    def __init__(
        self,
        config: CleaningConfig,
        registry: SkipListRegistry,
        *,
        supervisor: ProcessSupervisor | None = None,
        watchdog: HealthWatchdog | None = None,
        classifier: OutcomeClassifier | None = None,
        journal: Journal | None = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.supervisor = supervisor or ProcessSupervisor(config)
        self.watchdog = watchdog or HealthWatchdog(self.supervisor, poll_interval=config.poll_interval)
        self.classifier = classifier or OutcomeClassifier()
        self.journal = journal or NullJournal()
        self._cancel = threading.Event()
        self._busy = threading.Lock()

    @property
    def game_mode(self) -> GameMode | None:
        return self.supervisor.game_mode

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Stop after the current plugin, killing it if it is still running."""
        log.info("Cancellation requested")
        self._cancel.set()
        self.watchdog.interrupt()

    def build_queue(self, plugins: Iterable[str], game: GameMode | None = None) -> list[str]:
        """Filter *plugins* down to what should be sent to xEdit.

        Keeps load order, drops non-plugin names, case-insensitive
        duplicates and everything on the skip list.
        """
        queue, _ = self._split_queue(plugins, game)
        return queue

    def _split_queue(self, plugins: Iterable[str], game: GameMode | None) -> tuple[list[str], list[str]]:
        """Return (plugins to clean, skip-listed plugins)."""
        game = game or self.game_mode
        if game is None:
            raise ConfigurationError("Cannot build a cleaning queue without a game mode")

        queue: list[str] = []
        skipped: list[str] = []
        seen: set[str] = set()
        for raw in plugins:
            name = raw.strip()
            if not is_plugin_file(name):
                log.debug("Ignoring non-plugin entry '%s'", name)
                continue
            key = plugin_key(name)
            if key in seen:
                continue
            seen.add(key)
            if self.registry.should_skip(name, game):
                log.debug("Skipping '%s' (skip list)", name)
                skipped.append(name)
                continue
            queue.append(name)
        return queue, skipped


    def run(
        self,
        plugins: Iterable[str],
        on_progress: ProgressCallback | None = None,
        on_result: ResultCallback | None = None,
        *,
        close_running: bool = False,
    ) -> RunResult:
        """Clean every eligible plugin in *plugins*.

        Args:
            plugins: Plugin filenames in load order.
            on_progress: Optional callback receiving progress events.
            on_result: Optional callback fired after each plugin concludes.
            close_running: Close other xEdit instances instead of refusing
                to start while one is open.

        Returns:
            The run's counters and categorised plugin lists.

        Raises:
            ConfigurationError: The executable or game setup is unusable,
                or xEdit is already running. Nothing was cleaned.
            RunInProgressError: Another run is already in flight.
        """
        if not self._busy.acquire(blocking=False):
            raise RunInProgressError("A cleaning run is already in progress")
        try:
            return self._run(list(plugins), on_progress, on_result, close_running)
        finally:
            self._cancel.clear()
            self._busy.release()

    def _run(
        self,
        plugins: list[str],
        on_progress: ProgressCallback | None,
        on_result: ResultCallback | None,
        close_running: bool,
    ) -> RunResult:
        self.supervisor.check_executable()
        game = self.game_mode
        if game is None:
            raise ConfigurationError("Unable to determine the game mode")
        self._ensure_exclusive(close_running)

        queue, skipped = self._split_queue(plugins, game)
        total = len(queue)
        result = RunResult(game=game.value, queued=total)

        self.journal.write("xEdit EXE is set to: %s", self.config.xedit_path)
        for plugin in skipped:
            result.skip(plugin)
            self.journal.write("%s -> skipped (ignore list)", plugin)
        self.journal.write("Starting cleaning process for %d plugins...", total)
        if on_progress:
            on_progress(ProgressEvent(0, total, "Starting cleaning process..."))

        started = time.monotonic()
        for index, plugin in enumerate(queue, 1):
            if self._cancel.is_set():
                result.cancelled = True
                break

            if on_progress:
                on_progress(ProgressEvent(index, total, f"Cleaning {plugin}..."))

            outcome = self._clean_plugin(plugin, result)
            result.record(plugin, outcome)
            self._learn(plugin, game, outcome, result)
            self.journal.write("%s -> %s", plugin, outcome.message)
            if on_result:
                on_result(plugin, outcome)
            if on_progress:
                on_progress(ProgressEvent(index, total, f"{plugin}: {outcome.message}"))

            if outcome.reason is FailureReason.CANCELLED:
                result.cancelled = True
                break

        result.elapsed = time.monotonic() - started
        self._report(result)
        return result

    def _ensure_exclusive(self, close_running: bool) -> None:
        running = self.supervisor.running_instances()
        if not running:
            return
        if close_running:
            self.supervisor.close_running_instances()
            return
        pids = ", ".join(str(p.pid) for p in running)
        self.journal.write("Found existing xEdit process (pid %s); cannot start cleaning", pids)
        raise ConfigurationError(f"xEdit is already running (pid {pids}). Close it before cleaning.")

    def _clean_plugin(self, plugin: str, result: RunResult) -> OutcomeRecord:
        """Run one job and return its single outcome. Never raises."""
        job: CleaningJob | None = None
        try:
            job = self.supervisor.prepare(plugin)
            for warning in clear_logs(job.log_paths):
                result.warn(warning)

            try:
                self.supervisor.launch(job)
            except ConfigurationError as e:
                log.error("Cannot clean '%s': %s", plugin, e)
                return OutcomeRecord.failed(FailureReason.CONFIGURATION, str(e))
            except SpawnError as e:
                log.error("Cannot clean '%s': %s", plugin, e)
                return OutcomeRecord.failed(FailureReason.SPAWN_ERROR, str(e))

            self.journal.write(
                "Currently cleaning: %s (xEdit pid %s, started %s UTC)",
                plugin,
                job.pid,
                job.started_wall.strftime("%H:%M:%S"),
            )
            verdict = self.watchdog.watch(job, self._cancel)
            if verdict.is_abort:
                job.state = PluginState.FAILED
                self._discard_logs(job, result)
                return OutcomeRecord.failed(verdict.failure_reason)

            # A crash report beats an empty result log.
            if matches_fatal_signature(job.exception_log_path):
                job.state = PluginState.FAILED
                self._discard_logs(job, result)
                return OutcomeRecord.failed(FailureReason.MISSING_REQUIREMENT)

            try:
                outcome = self.classifier.classify(job.log_path)
            except ClassificationError as e:
                log.warning("%s", e)
                job.state = PluginState.FAILED
                return OutcomeRecord.failed(FailureReason.CLASSIFICATION_ERROR, str(e))

            job.state = PluginState.CLASSIFIED
            self._discard_logs(job, result)
            return outcome
        except Exception as e:
            log.exception("Plugin '%s' failed during cleaning", plugin)
            if job is not None and job.process is not None:
                self.supervisor.terminate(job.process)
            return OutcomeRecord.failed(FailureReason.ERROR, str(e))

    def _discard_logs(self, job: CleaningJob, result: RunResult) -> None:
        for warning in clear_logs(job.log_paths, preserve=self.config.debug_mode):
            result.warn(warning)

    def _learn(self, plugin: str, game: GameMode, outcome: OutcomeRecord, result: RunResult) -> None:
        """Add plugins that are not worth another attempt to the skip list."""
        learnable = (
            outcome.disposition is Disposition.NOTHING_TO_CLEAN
            or outcome.reason in LEARNABLE_FAILURES
        )
        if not learnable:
            return
        self.journal.write("%s -> adding to ignore list", plugin)
        if not self.registry.record_non_cleanable(plugin, game):
            result.warn(f"Could not save '{plugin}' to the skip list")

    def _report(self, result: RunResult) -> None:
        if result.cancelled:
            self.journal.write("Cleaning process cancelled by user")
        self.journal.write(
            "Cleaning complete! Processed %d/%d plugins (%d cleaned) in %s.",
            result.processed,
            result.queued,
            result.cleaned,
            format_elapsed(result.elapsed),
        )
        for title, names in result.categories():
            if names:
                self.journal.write("%s: %s", title, ", ".join(names))
        log.info("Run finished: %d processed, %d cleaned, %d failed",
                 result.processed, result.cleaned, len(result.failed))
