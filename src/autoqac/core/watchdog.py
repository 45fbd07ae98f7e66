"""Hang, crash and timeout detection for a running xEdit job.

The watchdog races two activities for every job: a waiter thread that
blocks until xEdit exits on its own, and a polling loop on the caller's
thread that checks the process vitals every ``poll_interval`` seconds.
The first to conclude decides the job's fate and the other is stopped
before :meth:`HealthWatchdog.watch` returns.

A job is judged hung when it made no CPU progress since the last poll
and it is not responding. How "responding" is decided depends on the
platform:

* On Windows, xEdit's visible top-level windows are checked with
  ``IsHungAppWindow`` (see :mod:`autoqac.core.windows`), which catches a
  frozen UI or a modal error dialog nobody will click.
* Elsewhere, and on Windows while xEdit has no window yet, only the
  process status is available: stopped, zombie or dead count as not
  responding. A process blocked on a dialog (for example under Wine)
  reports as sleeping and is therefore not recognised as hung.

Hangs the heuristic cannot see are caught by the timeout, so a job never
outlives ``timeout + poll_interval`` plus the termination grace.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from enum import Enum
from typing import Callable

import psutil

from autoqac.core.classifier import matches_fatal_signature
from autoqac.core.supervisor import ProcessSupervisor
from autoqac.core.windows import windows_responding
from autoqac.models.job import CleaningJob
from autoqac.models.outcome import FailureReason

log = logging.getLogger(__name__)

_NOT_RESPONDING = frozenset({psutil.STATUS_ZOMBIE, psutil.STATUS_STOPPED, psutil.STATUS_DEAD})


class Verdict(str, Enum):
    """How a watched job ended."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    UNRESPONSIVE = "unresponsive"
    MISSING_REQUIREMENT = "missing_requirement"
    CANCELLED = "cancelled"

    @property
    def is_abort(self) -> bool:
        return self is not Verdict.COMPLETED

    @property
    def failure_reason(self) -> FailureReason | None:
        return _FAILURE_REASONS.get(self)


_FAILURE_REASONS = {
    Verdict.TIMED_OUT: FailureReason.TIMED_OUT,
    Verdict.UNRESPONSIVE: FailureReason.UNRESPONSIVE,
    Verdict.MISSING_REQUIREMENT: FailureReason.MISSING_REQUIREMENT,
    Verdict.CANCELLED: FailureReason.CANCELLED,
}


WindowCheck = Callable[[int], "bool | None"]


class ProcessProbe:
    """psutil view of one process's CPU time and responsiveness.

    *window_check* reports whether the process's windows respond, or None
    when it cannot tell; it defaults to the ``IsHungAppWindow`` check on
    Windows and to nothing elsewhere.
    """

    def __init__(self, pid: int, *, window_check: WindowCheck | None = None) -> None:
        self._proc = psutil.Process(pid)
        if window_check is None and os.name == "nt":
            window_check = windows_responding
        self._window_check = window_check

    def cpu_seconds(self) -> float | None:
        """User plus system CPU time, or None if it cannot be read."""
        try:
            times = self._proc.cpu_times()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return None
        return times.user + times.system

    def is_responding(self) -> bool:
        if self._window_check is not None:
            responding = self._window_check(self._proc.pid)
            if responding is not None:
                return responding
        try:
            return self._proc.status() not in _NOT_RESPONDING
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            return True


ProbeFactory = Callable[[int], ProcessProbe]


class HealthWatchdog:
    """Watches one xEdit job at a time and aborts it when it goes bad."""

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        *,
        poll_interval: float = 3.0,
        cpu_epsilon: float = 0.01,
        probe_factory: ProbeFactory = ProcessProbe,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.supervisor = supervisor
        self.poll_interval = poll_interval
        self.cpu_epsilon = cpu_epsilon
        self._probe_factory = probe_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._wake: threading.Event | None = None

    def interrupt(self) -> None:
        """Wake the active poll loop now instead of at the next interval."""
        with self._lock:
            if self._wake is not None:
                self._wake.set()

    def watch(self, job: CleaningJob, cancel_event: threading.Event | None = None) -> Verdict:
        """Block until *job* exits on its own or is aborted.

        Aborted processes are terminated before this returns.
        """
        process = job.process
        if process is None:
            raise ValueError(f"Job for {job.plugin} has not been launched")
        cancel_event = cancel_event or threading.Event()

        exited = threading.Event()
        wake = threading.Event()

        def _await_exit() -> None:
            process.wait()
            exited.set()
            wake.set()

        waiter = threading.Thread(target=_await_exit, name=f"xedit-wait-{process.pid}", daemon=True)
        with self._lock:
            self._wake = wake
        if cancel_event.is_set():
            wake.set()
        waiter.start()

        probe = self._open_probe(process.pid)
        last_cpu = probe.cpu_seconds() if probe is not None else None
        verdict = Verdict.COMPLETED
        try:
            while True:
                wake.wait(self.poll_interval)
                if exited.is_set():
                    break
                wake.clear()
                if exited.is_set():
                    break

                cpu = probe.cpu_seconds() if probe is not None else None
                abort = self._evaluate(job, probe, last_cpu, cpu, cancel_event)
                if cpu is not None:
                    last_cpu = cpu
                if abort is not None:
                    verdict = abort
                    break
        finally:
            with self._lock:
                self._wake = None

        if verdict.is_abort:
            log.warning("Aborting xEdit for %s: %s", job.plugin, verdict.value)
            self.supervisor.terminate(process)
        waiter.join(timeout=self.supervisor.terminate_grace + self.poll_interval)
        if waiter.is_alive():
            log.error("xEdit (pid %s) did not exit after termination", process.pid)
        return verdict

    def _open_probe(self, pid: int) -> ProcessProbe | None:
        try:
            return self._probe_factory(pid)
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            log.debug("Cannot probe pid %s: %s", pid, e)
            return None

    def _evaluate(
        self,
        job: CleaningJob,
        probe: ProcessProbe | None,
        last_cpu: float | None,
        cpu: float | None,
        cancel_event: threading.Event,
    ) -> Verdict | None:
        """Return the abort verdict for this poll, or None to keep waiting."""
        if cancel_event.is_set():
            return Verdict.CANCELLED

        if probe is not None and last_cpu is not None and cpu is not None:
            if cpu - last_cpu < self.cpu_epsilon and not probe.is_responding():
                return Verdict.UNRESPONSIVE

        if job.started_at is not None and self._clock() - job.started_at > job.timeout:
            return Verdict.TIMED_OUT

        if matches_fatal_signature(job.exception_log_path):
            return Verdict.MISSING_REQUIREMENT

        return None
