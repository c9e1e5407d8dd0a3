"""On-demand launch of the external agent process."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading

import psutil

logger = logging.getLogger(__name__)


class ProcessLauncher:
    """Starts the external process once when it is not already running.

    Detection checks the process started by this launcher first, then any
    running process whose name matches ``process_name``.
    """

    def __init__(self, *, command: str, process_name: str = "") -> None:
        self.command = command.strip()
        self.process_name = process_name.strip()
        self._process: subprocess.Popen[bytes] | None = None
        self._lock = threading.Lock()

    def is_running(self) -> bool:
        if self._process is not None and self._process.poll() is None:
            return True
        if not self.process_name:
            return False
        wanted = _base_name(self.process_name)
        for process in psutil.process_iter(["name"]):
            name = process.info.get("name") or ""
            if _base_name(name) == wanted:
                return True
        return False

    def ensure_running(self) -> bool:
        """Launch the process if needed; returns True when a launch was started.

        Failures are logged and never raised.
        """

        if not self.command:
            return False
        with self._lock:
            try:
                if self.is_running():
                    return False
            except psutil.Error as error:
                logger.warning("Could not inspect running processes: %s", error)
            try:
                self._process = _spawn(self.command)
            except (OSError, ValueError) as error:
                logger.error("Failed to launch external process %r: %s", self.command, error)
                return False
        logger.info("External process launched: %s (pid=%s)", self.command, self._process.pid)
        return True

    def terminate(self) -> None:
        """Stop a process started by this launcher, if any."""

        with self._lock:
            process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        try:
            process.terminate()
            process.wait(timeout=2)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait(timeout=2)
        except OSError:
            return


def _spawn(command: str) -> subprocess.Popen[bytes]:
    if os.name == "nt":
        return subprocess.Popen(  # noqa: S603
            command,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            creationflags=getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0),
        )
    argv = shlex.split(command)
    if not argv:
        raise ValueError("launcher command rendered empty argv")
    return subprocess.Popen(  # noqa: S603
        argv,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )


def _base_name(name: str) -> str:
    lowered = name.strip().lower()
    if lowered.endswith(".exe"):
        lowered = lowered[:-4]
    return lowered
