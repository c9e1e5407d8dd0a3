"""File-based request/response broker for an out-of-process agent.

Each request is written to ``message_<id>.txt`` in a directory shared with the
external process, which answers with ``reponse_<id>.txt`` (spelling is part of
the wire contract). A single background thread polls the directory and hands
every response to the caller waiting on that id.
"""

from __future__ import annotations

import itertools
import logging
import os
import queue
import re
import sys
import threading
import time
from concurrent.futures import CancelledError, Future, InvalidStateError
from dataclasses import dataclass
from pathlib import Path

from agent_relay.config import BrokerSettings, ConfigurationError
from agent_relay.transport.base import TransportError
from agent_relay.transport.launcher import ProcessLauncher

logger = logging.getLogger(__name__)

REQUEST_FILE_TEMPLATE = "message_{id}.txt"
RESPONSE_FILE_TEMPLATE = "reponse_{id}.txt"
REQUEST_FILE_GLOB = "message_*.txt"
RESPONSE_FILE_GLOB = "reponse_*.txt"

_RESPONSE_NAME = re.compile(r"^reponse_(\d+)\.txt$")


@dataclass(slots=True)
class PendingRequest:
    """A sent request still waiting for its response file."""

    request_id: int
    future: Future[str]
    deadline: float | None = None


class FileMessageBroker:
    """Correlates outbound request files with inbound response files."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        message_dir: Path,
        poll_interval_seconds: float = 0.5,
        io_retry_attempts: int = 5,
        io_retry_delay_seconds: float = 0.05,
        request_timeout_seconds: float = 300.0,
        stop_join_seconds: float = 0.5,
        cleanup_on_start: bool = True,
        launcher: ProcessLauncher | None = None,
    ) -> None:
        self.message_dir = message_dir
        self.poll_interval_seconds = poll_interval_seconds
        self.io_retry_attempts = max(1, io_retry_attempts)
        self.io_retry_delay_seconds = io_retry_delay_seconds
        self.request_timeout_seconds = request_timeout_seconds
        self.stop_join_seconds = stop_join_seconds
        self.cleanup_on_start = cleanup_on_start
        self.launcher = launcher
        self._pending: dict[int, PendingRequest] = {}
        self._pending_lock = threading.Lock()
        self._ids = itertools.count(1)
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._swept = False
        self._log_queue: queue.Queue[logging.LogRecord] = queue.Queue()

    @classmethod
    def from_settings(cls, settings: BrokerSettings) -> FileMessageBroker:
        launcher = None
        if settings.launcher_command:
            launcher = ProcessLauncher(
                command=settings.launcher_command,
                process_name=settings.process_name,
            )
        return cls(
            message_dir=settings.message_dir,
            poll_interval_seconds=settings.poll_interval_seconds,
            io_retry_attempts=settings.io_retry_attempts,
            io_retry_delay_seconds=settings.io_retry_delay_seconds,
            request_timeout_seconds=settings.request_timeout_seconds,
            stop_join_seconds=settings.stop_join_seconds,
            cleanup_on_start=settings.cleanup_on_start,
            launcher=launcher,
        )

    # -- lifecycle ---------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def start(self) -> None:
        """Start the polling thread; sweeps leftovers of a previous run once."""

        with self._state_lock:
            if self.is_running:
                return
            if not self.message_dir.is_dir():
                raise ConfigurationError(
                    f"Message directory does not exist: {self.message_dir}",
                )
            if self.cleanup_on_start and not self._swept:
                self.sweep_orphans()
            self._swept = True
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._poll_loop,
                args=(self._stop_event,),
                daemon=True,
                name="agent-relay-broker",
            )
            self._thread.start()
        logger.info("Response polling started on %s", self.message_dir)
        self.drain_logs()

    def stop(self) -> None:
        """Stop polling and forget pending requests (their futures are cancelled)."""

        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            thread.join(timeout=self.stop_join_seconds)
            self._thread = None

        with self._pending_lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for entry in pending:
            entry.future.cancel()
        logger.info("Response polling stopped (%d pending request(s) dropped)", len(pending))
        self.drain_logs()

    def sweep_orphans(self) -> int:
        """Delete request/response files left over from a previous run."""

        removed = 0
        try:
            leftovers = [
                *self.message_dir.glob(REQUEST_FILE_GLOB),
                *self.message_dir.glob(RESPONSE_FILE_GLOB),
            ]
            for path in leftovers:
                path.unlink(missing_ok=True)
                removed += 1
        except OSError as error:
            logger.warning("Initial cleanup of %s failed: %s", self.message_dir, error)
            return removed
        logger.info("Cleanup removed %d orphaned file(s) from %s", removed, self.message_dir)
        return removed

    # -- sending -----------------------------------------------------------------

    def submit(self, payload: str, timeout: float | None = None) -> Future[str]:
        """Write a request file and return a future for its response.

        The future fails with ``TransportError`` once ``timeout`` (default
        ``request_timeout_seconds``, zero meaning never) elapses without a
        response; expiry is checked on each polling pass.
        """

        self.start()
        if self.launcher is not None:
            self.launcher.ensure_running()

        wait_seconds = self.request_timeout_seconds if timeout is None else timeout
        deadline = time.monotonic() + wait_seconds if wait_seconds > 0 else None
        future: Future[str] = Future()
        with self._pending_lock:
            request_id = next(self._ids)
            self._pending[request_id] = PendingRequest(
                request_id=request_id,
                future=future,
                deadline=deadline,
            )

        request_path = self._request_path(request_id)
        logger.info("Sending request %d as %s", request_id, request_path.name)
        try:
            _write_atomic(request_path, payload)
        except OSError as error:
            self._forget(request_id)
            future.set_exception(
                TransportError(f"Could not write request {request_id}: {error}", transient=True),
            )
        self.drain_logs()
        return future

    def send(self, payload: str, timeout: float | None = None) -> str:
        """Send a payload and block until its response arrives."""

        future = self.submit(payload, timeout=timeout)
        try:
            return future.result()
        except CancelledError as error:
            raise TransportError("Request dropped because the broker stopped") from error
        finally:
            self.drain_logs()

    # -- polling -----------------------------------------------------------------

    def poll_once(self) -> int:
        """Process every response file currently on disk; returns files handled."""

        handled = 0
        with os.scandir(self.message_dir) as iterator:
            names = [entry.name for entry in iterator if entry.is_file()]
        for name in names:
            match = _RESPONSE_NAME.match(name)
            if match is None:
                continue
            self._handle_response(self.message_dir / name, int(match.group(1)))
            handled += 1
        self._expire_overdue()
        return handled

    def _expire_overdue(self) -> None:
        now = time.monotonic()
        with self._pending_lock:
            overdue = [
                entry
                for entry in self._pending.values()
                if entry.deadline is not None and entry.deadline <= now
            ]
            for entry in overdue:
                del self._pending[entry.request_id]

        for entry in overdue:
            # not yet picked up by the external process: withdraw it
            self._request_path(entry.request_id).unlink(missing_ok=True)
            self._defer(logging.WARNING, "Request %d timed out", entry.request_id)
            try:
                entry.future.set_exception(
                    TransportError(
                        f"No response for request {entry.request_id} before timeout",
                        transient=True,
                    ),
                )
            except InvalidStateError:
                continue

    def _request_path(self, request_id: int) -> Path:
        return self.message_dir / REQUEST_FILE_TEMPLATE.format(id=request_id)

    def _handle_response(self, path: Path, request_id: int) -> None:
        with self._pending_lock:
            waiting = request_id in self._pending

        if not waiting:
            self._delete_with_retry(path, request_id)
            self._defer(
                logging.WARNING,
                "Orphan response file deleted (no pending request for id %d)",
                request_id,
            )
            return

        content, read_error = self._read_with_retry(path, request_id)
        self._delete_with_retry(path, request_id)
        entry = self._forget(request_id)
        if entry is None:
            return
        try:
            if read_error is not None:
                entry.future.set_exception(
                    TransportError(
                        f"Could not read response {request_id}: {read_error}",
                        transient=True,
                    ),
                )
            else:
                self._defer(logging.INFO, "Response received for request %d", request_id)
                entry.future.set_result(content or "")
        except InvalidStateError:
            self._defer(logging.DEBUG, "Request %d was already resolved", request_id)

    def _read_with_retry(self, path: Path, request_id: int) -> tuple[str | None, OSError | None]:
        last_error: OSError | None = None
        for _ in range(self.io_retry_attempts):
            try:
                return path.read_text("utf-8"), None
            except FileNotFoundError as error:
                return None, error
            except OSError as error:
                last_error = error
                time.sleep(self.io_retry_delay_seconds)
        self._defer(
            logging.ERROR,
            "[%d] Response file unreadable after %d attempts: %s",
            request_id,
            self.io_retry_attempts,
            last_error,
        )
        return None, last_error

    def _delete_with_retry(self, path: Path, request_id: int) -> bool:
        for _ in range(self.io_retry_attempts):
            try:
                path.unlink(missing_ok=True)
            except OSError:
                time.sleep(self.io_retry_delay_seconds)
                continue
            return True
        self._defer(
            logging.ERROR,
            "[%d] Could not delete response file after %d attempts",
            request_id,
            self.io_retry_attempts,
        )
        return False

    def _forget(self, request_id: int) -> PendingRequest | None:
        with self._pending_lock:
            return self._pending.pop(request_id, None)

    def _poll_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.poll_once()
            except Exception:  # noqa: BLE001
                self._defer(
                    logging.ERROR,
                    "Error while polling %s",
                    self.message_dir,
                    exc_info=sys.exc_info(),
                )
            stop_event.wait(timeout=self.poll_interval_seconds)

    # -- deferred logging --------------------------------------------------------

    def _defer(self, level: int, msg: str, *args: object, exc_info=None) -> None:
        """Queue a log record from the polling thread for the caller thread."""

        if not logger.isEnabledFor(level):
            return
        record = logger.makeRecord(logger.name, level, __file__, 0, msg, args, exc_info)
        self._log_queue.put(record)

    def drain_logs(self) -> int:
        """Emit log records queued by the polling thread on the current thread."""

        drained = 0
        while True:
            try:
                record = self._log_queue.get_nowait()
            except queue.Empty:
                return drained
            logger.handle(record)
            drained += 1


def _write_atomic(path: Path, text: str) -> None:
    """Write ``text`` so the final name only appears once the content is complete."""

    tmp_path = path.with_name(f".{path.name}.tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        handle.write(text)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)
