"""Launching and terminating xEdit."""

from __future__ import annotations

import logging
import subprocess
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import psutil

from autoqac.errors import ConfigurationError, SpawnError
from autoqac.games import (
    GameMode,
    executable_stem,
    game_for_executable,
    is_known_executable,
    is_universal_executable,
    skip_list_partition,
)
from autoqac.models.job import CleaningJob, PluginState
from autoqac.settings import CleaningConfig

log = logging.getLogger(__name__)

# Seconds between the graceful close request and the hard kill.
_TERMINATE_GRACE = 1.0

QAC_FLAG = "-QAC"
AUTOMATION_FLAGS = ("-autoexit", "-autoload")
PARTIAL_FORMS_PREFIX = "-iknowwhatimdoing"
PARTIAL_FORMS_SUFFIX = "-allowmakepartial"

PopenFactory = Callable[..., subprocess.Popen]


class ProcessSupervisor:
    """Builds xEdit command lines and owns the xEdit process lifecycle."""

    def __init__(
        self,
        config: CleaningConfig,
        *,
        popen: PopenFactory = subprocess.Popen,
        terminate_grace: float = _TERMINATE_GRACE,
    ) -> None:
        self.config = config
        self._popen = popen
        self.terminate_grace = terminate_grace

    # ── configuration ────────────────────────────────────────────────────

    @property
    def executable(self) -> Path | None:
        return self.config.xedit_path

    @property
    def is_universal(self) -> bool:
        return self.executable is not None and is_universal_executable(self.executable)

    @property
    def game_mode(self) -> GameMode | None:
        """Game the run targets: configured, else implied by the executable."""
        if self.config.game_mode is not None:
            return self.config.game_mode
        if self.executable is not None:
            return game_for_executable(self.executable)
        return None

    def check_executable(self) -> None:
        """Fail fast on an unusable executable.

        Raises:
            ConfigurationError: Path empty or missing, not an xEdit
                executable, or a universal xEdit without a game mode.
        """
        exe = self.executable
        if exe is None or not str(exe).strip():
            raise ConfigurationError("xEdit executable path is not set")
        if not exe.is_file():
            raise ConfigurationError(f"xEdit executable not found at path: {exe}")
        if not is_known_executable(exe):
            raise ConfigurationError(
                f"Cannot determine the xEdit variant of '{exe.name}'. "
                "Set the xEdit path to a valid xEdit executable."
            )
        if self.is_universal and self.game_mode is None:
            raise ConfigurationError(
                f"'{exe.name}' is a universal xEdit; a game mode is required "
                "(set it explicitly or use loadorder.txt for detection)"
            )

        bound = game_for_executable(exe)
        if bound is not None and self.config.game_mode is not None:
            if skip_list_partition(bound) != skip_list_partition(self.config.game_mode):
                log.warning(
                    "%s is bound to %s but the configured game is %s; check your setup",
                    exe.name,
                    bound.value,
                    self.config.game_mode.value,
                )

    # ── command line ─────────────────────────────────────────────────────

    def build_command(self, plugin: str) -> list[str]:
        """Return the argv used to clean *plugin*."""
        args: list[str] = [str(self.executable)]
        if self.is_universal and self.game_mode is not None:
            args.append(f"-{self.game_mode.value}")
        if self.config.partial_forms:
            args += [PARTIAL_FORMS_PREFIX, QAC_FLAG, PARTIAL_FORMS_SUFFIX]
        else:
            args.append(QAC_FLAG)
        args += [*AUTOMATION_FLAGS, plugin]
        return args

    def log_paths(self) -> tuple[Path, Path]:
        """Return (result log, exception log) written beside the executable."""
        exe = self.executable
        if exe is None:
            raise ConfigurationError("xEdit executable path is not set")
        if self.is_universal and self.game_mode is not None:
            prefix = f"{self.game_mode.value.upper()}Edit"
        else:
            prefix = executable_stem(exe).upper()
        return exe.parent / f"{prefix}_log.txt", exe.parent / f"{prefix}Exception.log"

    # ── lifecycle ────────────────────────────────────────────────────────

    def prepare(self, plugin: str) -> CleaningJob:
        """Describe the job for *plugin* without starting anything."""
        log_path, exception_log_path = self.log_paths()
        return CleaningJob(
            plugin=plugin,
            command=self.build_command(plugin),
            log_path=log_path,
            exception_log_path=exception_log_path,
            timeout=float(self.config.timeout),
        )

    def launch(self, job: CleaningJob) -> subprocess.Popen:
        """Start xEdit for *job* and record the start time.

        Raises:
            ConfigurationError: The executable vanished or is invalid.
            SpawnError: The OS could not create the process.
        """
        self.check_executable()
        log.debug("Launching: %s", " ".join(job.command))
        try:
            process = self._popen(
                job.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=str(self.executable.parent),
            )
        except OSError as exc:
            raise SpawnError(f"Could not start {self.executable}: {exc}") from exc

        job.process = process
        job.started_at = time.monotonic()
        job.started_wall = datetime.now(timezone.utc)
        job.state = PluginState.RUNNING
        log.info("Started xEdit (pid %s) for %s", process.pid, job.plugin)
        return process

    def terminate(self, process: subprocess.Popen, grace: float | None = None) -> None:
        """Stop *process*; a process that already exited counts as stopped.

        Requests a graceful close first and kills it if it is still alive
        after *grace* seconds.
        """
        if process.poll() is not None:
            return
        grace = self.terminate_grace if grace is None else grace
        process.terminate()
        try:
            process.wait(timeout=grace)
            return
        except subprocess.TimeoutExpired:
            log.warning("xEdit (pid %s) ignored close request; killing", process.pid)
        process.kill()
        process.wait()

    # ── other xEdit instances ────────────────────────────────────────────

    def running_instances(self) -> list[psutil.Process]:
        """Other live processes running the configured xEdit executable."""
        if self.executable is None:
            return []
        stem = executable_stem(self.executable)
        found: list[psutil.Process] = []
        for proc in psutil.process_iter(["name"]):
            try:
                name = proc.info.get("name") or ""
                if executable_stem(name) == stem and proc.is_running():
                    found.append(proc)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return found

    def close_running_instances(self) -> int:
        """Close every other instance of xEdit. Returns how many were found."""
        instances = self.running_instances()
        for proc in instances:
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                continue
        _, alive = psutil.wait_procs(instances, timeout=self.terminate_grace)
        for proc in alive:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue
        if instances:
            log.info("Closed %d running xEdit instance(s)", len(instances))
        return len(instances)
