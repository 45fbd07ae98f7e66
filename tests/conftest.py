"""Shared test fixtures."""

from __future__ import annotations

import itertools
import subprocess
import threading

import pytest

import autoqac.storage as storage

_pids = itertools.count(40000)


@pytest.fixture
def isolate_storage(tmp_path, monkeypatch):
    """Redirect storage to a temp directory."""
    data_dir = tmp_path / "autoqac_data"
    data_dir.mkdir()
    monkeypatch.setattr(storage, "_DATA_DIR", data_dir)
    monkeypatch.setattr(storage, "HISTORY_FILE", data_dir / "history.json")
    monkeypatch.setattr(storage, "SKIPLIST_FILE", data_dir / "skiplist.json")
    monkeypatch.setattr(storage, "JOURNAL_FILE", data_dir / "journal.log")
    return data_dir


@pytest.fixture
def xedit(tmp_path):
    """An (empty) SSEEdit executable in its own directory."""
    xedit_dir = tmp_path / "xedit"
    xedit_dir.mkdir()
    exe = xedit_dir / "SSEEdit.exe"
    exe.write_text("")
    return exe


class FakeProcess:
    """Stand-in for ``subprocess.Popen`` that exits when told to."""

    def __init__(self, *, ignore_terminate: bool = False) -> None:
        self.pid = next(_pids)
        self.returncode: int | None = None
        self.ignore_terminate = ignore_terminate
        self.terminated = False
        self.killed = False
        self._done = threading.Event()

    def finish(self, code: int = 0) -> None:
        if self.returncode is None:
            self.returncode = code
        self._done.set()

    def poll(self) -> int | None:
        return self.returncode

    def wait(self, timeout: float | None = None) -> int:
        if not self._done.wait(timeout):
            raise subprocess.TimeoutExpired("xedit", timeout)
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        if not self.ignore_terminate:
            self.finish(1)

    def kill(self) -> None:
        self.killed = True
        self.finish(-9)


class FakeProbe:
    """Stand-in for ``ProcessProbe`` with scripted vitals."""

    def __init__(self, *, busy: bool = True, responding: bool = True, cpu: float | None = 1.0) -> None:
        self.busy = busy
        self.responding = responding
        self.cpu = cpu

    def cpu_seconds(self) -> float | None:
        if self.cpu is not None and self.busy:
            self.cpu += 0.5
        return self.cpu

    def is_responding(self) -> bool:
        return self.responding


@pytest.fixture
def fake_process():
    """Factory for fake xEdit processes."""
    return FakeProcess


@pytest.fixture
def fake_probe():
    """Factory for fake process probes."""
    return FakeProbe


@pytest.fixture
def no_running_xedit(monkeypatch):
    """Pretend no other xEdit instance is running."""
    monkeypatch.setattr("autoqac.core.supervisor.psutil.process_iter", lambda *args, **kwargs: iter([]))
