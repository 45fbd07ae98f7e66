"""Tests for the xEdit health watchdog."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import threading
import time

import psutil
import pytest

from autoqac.core.supervisor import ProcessSupervisor
from autoqac.core.watchdog import HealthWatchdog, ProcessProbe, Verdict
from autoqac.models.job import CleaningJob
from autoqac.models.outcome import FailureReason
from autoqac.settings import CleaningConfig


@pytest.fixture
def supervisor(xedit):
    return ProcessSupervisor(CleaningConfig(xedit_path=xedit), terminate_grace=0.05)


@pytest.fixture
def make_job(xedit):
    def _make(process, timeout=30.0, started_at=None):
        return CleaningJob(
            plugin="Dirty.esp",
            command=[],
            log_path=xedit.parent / "SSEEDIT_log.txt",
            exception_log_path=xedit.parent / "SSEEDITException.log",
            timeout=timeout,
            started_at=time.monotonic() if started_at is None else started_at,
            process=process,
        )
    return _make


def _watchdog(supervisor, probe, **kwargs):
    kwargs.setdefault("poll_interval", 0.01)
    return HealthWatchdog(supervisor, probe_factory=lambda pid: probe, **kwargs)


def _later(delay, fn):
    timer = threading.Timer(delay, fn)
    timer.start()
    return timer


class TestVerdict:
    def test_completed_is_not_abort(self):
        assert not Verdict.COMPLETED.is_abort
        assert Verdict.COMPLETED.failure_reason is None

    def test_abort_reasons(self):
        assert Verdict.TIMED_OUT.failure_reason is FailureReason.TIMED_OUT
        assert Verdict.CANCELLED.is_abort


class TestHealthWatchdog:
    def test_natural_exit(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        _later(0.05, process.finish)
        verdict = _watchdog(supervisor, fake_probe()).watch(make_job(process))
        assert verdict is Verdict.COMPLETED
        assert not process.terminated

    def test_already_exited(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        process.finish()
        assert _watchdog(supervisor, fake_probe()).watch(make_job(process)) is Verdict.COMPLETED

    def test_timeout(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        watchdog = _watchdog(supervisor, fake_probe(), clock=lambda: 1000.0)

        verdict = watchdog.watch(make_job(process, timeout=30, started_at=0.0))

        assert verdict is Verdict.TIMED_OUT
        assert process.terminated
        assert process.poll() is not None

    def test_timeout_kills_stubborn_process(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process(ignore_terminate=True)
        watchdog = _watchdog(supervisor, fake_probe(), clock=lambda: 1000.0)

        assert watchdog.watch(make_job(process, started_at=0.0)) is Verdict.TIMED_OUT
        assert process.killed

    def test_unresponsive(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        probe = fake_probe(busy=False, responding=False)
        assert _watchdog(supervisor, probe).watch(make_job(process)) is Verdict.UNRESPONSIVE
        assert process.terminated

    def test_idle_but_responding_is_not_a_hang(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        _later(0.1, process.finish)
        probe = fake_probe(busy=False, responding=True)
        assert _watchdog(supervisor, probe).watch(make_job(process)) is Verdict.COMPLETED

    def test_busy_but_not_responding_is_not_a_hang(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        _later(0.1, process.finish)
        probe = fake_probe(busy=True, responding=False)
        assert _watchdog(supervisor, probe).watch(make_job(process)) is Verdict.COMPLETED

    def test_missing_requirement(self, supervisor, make_job, fake_process, fake_probe, xedit):
        (xedit.parent / "SSEEDITException.log").write_text(
            "Dirty.esp requires master Missing.esm which can not be found"
        )
        process = fake_process()
        verdict = _watchdog(supervisor, fake_probe()).watch(make_job(process))
        assert verdict is Verdict.MISSING_REQUIREMENT
        assert process.terminated

    def test_cancel_before_watch(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        cancel = threading.Event()
        cancel.set()
        watchdog = _watchdog(supervisor, fake_probe(), poll_interval=10)

        started = time.monotonic()
        verdict = watchdog.watch(make_job(process), cancel)

        assert verdict is Verdict.CANCELLED
        assert time.monotonic() - started < 5
        assert process.terminated

    def test_interrupt_wakes_poll_loop(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        cancel = threading.Event()
        watchdog = _watchdog(supervisor, fake_probe(), poll_interval=10)

        def _cancel():
            cancel.set()
            watchdog.interrupt()

        _later(0.05, _cancel)
        started = time.monotonic()
        verdict = watchdog.watch(make_job(process), cancel)

        assert verdict is Verdict.CANCELLED
        assert time.monotonic() - started < 5

    def test_interrupt_when_idle_is_harmless(self, supervisor, fake_probe):
        _watchdog(supervisor, fake_probe()).interrupt()

    def test_unlaunched_job(self, supervisor, make_job, fake_probe):
        with pytest.raises(ValueError, match="not been launched"):
            _watchdog(supervisor, fake_probe()).watch(make_job(None))

    def test_probe_unavailable(self, supervisor, make_job, fake_process):
        def no_probe(pid):
            raise psutil.NoSuchProcess(pid)

        process = fake_process()
        _later(0.05, process.finish)
        watchdog = HealthWatchdog(supervisor, poll_interval=0.01, probe_factory=no_probe)
        assert watchdog.watch(make_job(process)) is Verdict.COMPLETED


@pytest.fixture
def child():
    """Spawn real Python children, killed at teardown."""
    procs: list[subprocess.Popen] = []

    def _spawn(code: str) -> subprocess.Popen:
        proc = subprocess.Popen([sys.executable, "-c", code])
        procs.append(proc)
        return proc

    yield _spawn
    for proc in procs:
        if proc.poll() is None:
            proc.kill()
            proc.wait()


class TestTimeoutBound:
    TIMEOUT = 0.2
    POLL = 0.05
    # Scheduling slack on loaded CI machines.
    SLACK = 0.25

    def _bound(self, supervisor):
        return self.TIMEOUT + self.POLL + supervisor.terminate_grace + self.SLACK

    def test_non_exiting_process_is_stopped_in_time(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process()
        watchdog = _watchdog(supervisor, fake_probe(), poll_interval=self.POLL)

        started = time.monotonic()
        verdict = watchdog.watch(make_job(process, timeout=self.TIMEOUT, started_at=started))
        elapsed = time.monotonic() - started

        assert verdict is Verdict.TIMED_OUT
        assert self.TIMEOUT <= elapsed <= self._bound(supervisor)
        assert process.poll() is not None

    def test_stubborn_process_is_killed_in_time(self, supervisor, make_job, fake_process, fake_probe):
        process = fake_process(ignore_terminate=True)
        watchdog = _watchdog(supervisor, fake_probe(), poll_interval=self.POLL)

        started = time.monotonic()
        verdict = watchdog.watch(make_job(process, timeout=self.TIMEOUT, started_at=started))

        assert verdict is Verdict.TIMED_OUT
        assert time.monotonic() - started <= self._bound(supervisor)
        assert process.killed


class TestProcessProbe:
    def test_window_check_decides_when_it_knows(self):
        assert ProcessProbe(os.getpid(), window_check=lambda pid: False).is_responding() is False
        assert ProcessProbe(os.getpid(), window_check=lambda pid: True).is_responding() is True

    def test_falls_back_to_status_without_windows(self):
        assert ProcessProbe(os.getpid(), window_check=lambda pid: None).is_responding() is True

    def test_idle_child_with_hung_window_is_unresponsive(self, supervisor, make_job, child):
        proc = child("import time; time.sleep(60)")
        watchdog = HealthWatchdog(
            supervisor,
            poll_interval=0.05,
            probe_factory=lambda pid: ProcessProbe(pid, window_check=lambda p: False),
        )

        started = time.monotonic()
        verdict = watchdog.watch(make_job(proc, timeout=30))

        assert verdict is Verdict.UNRESPONSIVE
        assert time.monotonic() - started < 10
        assert proc.poll() is not None


@pytest.mark.skipif(sys.platform == "win32", reason="needs SIGSTOP")
class TestProcessProbePosix:
    def _wait_for_status(self, pid, status, timeout=5.0):
        deadline = time.monotonic() + timeout
        while psutil.Process(pid).status() != status and time.monotonic() < deadline:
            time.sleep(0.01)

    def test_busy_child(self, child):
        proc = child("while True: pass")
        probe = ProcessProbe(proc.pid, window_check=lambda pid: None)

        first = probe.cpu_seconds()
        time.sleep(0.3)
        second = probe.cpu_seconds()

        assert first is not None and second is not None
        assert second > first
        assert probe.is_responding()

    def test_stopped_child(self, child):
        proc = child("import time; time.sleep(60)")
        os.kill(proc.pid, signal.SIGSTOP)
        self._wait_for_status(proc.pid, psutil.STATUS_STOPPED)

        probe = ProcessProbe(proc.pid, window_check=lambda pid: None)

        assert not probe.is_responding()

    def test_watchdog_aborts_stopped_child(self, supervisor, make_job, child):
        proc = child("import time; time.sleep(60)")
        os.kill(proc.pid, signal.SIGSTOP)
        self._wait_for_status(proc.pid, psutil.STATUS_STOPPED)
        watchdog = HealthWatchdog(supervisor, poll_interval=0.05)

        verdict = watchdog.watch(make_job(proc, timeout=30))

        assert verdict is Verdict.UNRESPONSIVE
        assert proc.poll() is not None

    def test_exited_child(self, child):
        proc = child("pass")
        probe = ProcessProbe(proc.pid, window_check=lambda pid: None)
        proc.wait()
        assert probe.cpu_seconds() is None
        assert not probe.is_responding()
