"""Routes user messages through the transport and agent replies into the dispatcher."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor

from agent_relay.commands.dispatcher import CommandDispatcher
from agent_relay.config import ConfigurationError
from agent_relay.models import ConnectionState, Mode
from agent_relay.prompt import PromptComposer
from agent_relay.sanitization import sanitize_preview
from agent_relay.transport.base import Transport, TransportError

logger = logging.getLogger(__name__)


class Orchestrator:
    """Owns one transport, one dispatcher and one prompt composer.

    Replies are dispatched on a single worker thread so command lists from
    different replies never run concurrently.
    """

    def __init__(
        self,
        *,
        transport: Transport | None,
        dispatcher: CommandDispatcher | None,
        prompt: PromptComposer | None = None,
    ) -> None:
        self.transport = transport
        self.dispatcher = dispatcher
        self.prompt = prompt
        self.state = ConnectionState.DISCONNECTED
        self.mode = Mode.CHATTING
        self.last_raw_response: str | None = None
        self._status_listeners: list[Callable[[bool], None]] = []
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    # -- connection ----------------------------------------------------------------

    def on_status(self, callback: Callable[[bool], None]) -> None:
        """Register a connected/disconnected listener."""

        self._status_listeners.append(callback)

    def connect(self) -> None:
        if self.transport is None or self.dispatcher is None:
            missing = "transport" if self.transport is None else "dispatcher"
            logger.error("Cannot connect: no %s is configured", missing)
            self.state = ConnectionState.DISCONNECTED
            raise ConfigurationError(f"Cannot connect: no {missing} is configured.")

        with self._lock:
            if self.state is ConnectionState.CONNECTED:
                return
            self.state = ConnectionState.CONNECTING
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dispatch")

        self.transport.on_status(self._handle_status)
        self.transport.on_response(self._handle_raw_response)
        if self.prompt is not None:
            self.prompt.add_listener(self._handle_prompt_change)
        try:
            self.transport.connect()
        except Exception:
            self.disconnect()
            raise
        logger.info("Orchestrator connected (state=%s)", self.state.value)

    def disconnect(self) -> None:
        """Tear down the transport; calling it twice is harmless."""

        with self._lock:
            if self.state is ConnectionState.DISCONNECTED and self._executor is None:
                return
            executor, self._executor = self._executor, None

        if self.transport is not None:
            self.transport.disconnect()
            self.transport.on_status(None)
            self.transport.on_response(None)
        if self.prompt is not None:
            self.prompt.remove_listener(self._handle_prompt_change)
        if executor is not None:
            executor.shutdown(wait=True)
        self.state = ConnectionState.DISCONNECTED
        logger.info("Orchestrator disconnected")

    # -- messaging -----------------------------------------------------------------

    def build_prompt(self, text: str, mode: Mode) -> str:
        if not mode.structured or self.prompt is None:
            return text
        return self.prompt.build_request_preamble(mode) + text

    def send_user_message(self, text: str, mode: Mode) -> Future[str]:
        """Send ``text`` and return a future for the dispatcher's final output."""

        result: Future[str] = Future()
        if self.transport is None or self.dispatcher is None or self._executor is None:
            result.set_exception(
                ConfigurationError("Orchestrator is not connected; call connect() first."),
            )
            return result

        self.mode = mode
        try:
            final_prompt = self.build_prompt(text, mode)
        except ConfigurationError as error:
            logger.error("Cannot build the prompt: %s", error)
            result.set_exception(error)
            return result
        if mode.structured:
            logger.debug("Final prompt (preview): %s", sanitize_preview(final_prompt))
        else:
            logger.debug("Chatting: sending user text directly: %s", sanitize_preview(text))

        executor = self._executor
        reply = self.transport.send_text(final_prompt)
        reply.add_done_callback(
            lambda done: self._schedule_dispatch(executor, done, result, mode),
        )
        return result

    def ask(self, text: str, mode: Mode, timeout: float | None = None) -> str:
        """Blocking form of ``send_user_message``."""

        future = self.send_user_message(text, mode)
        try:
            return future.result(timeout=timeout)
        except CancelledError as error:
            raise TransportError("Request was cancelled") from error

    def simulate(self, text: str, mode: Mode = Mode.SIMULATION) -> str:
        """Feed ``text`` straight to the dispatcher, bypassing the transport."""

        if self.dispatcher is None:
            raise ConfigurationError("Cannot simulate: no dispatcher is configured.")
        self.mode = mode
        return self.dispatcher.parse_and_execute(text, mode.structured)

    # -- callbacks -----------------------------------------------------------------

    def _schedule_dispatch(
        self,
        executor: ThreadPoolExecutor,
        reply: Future[str],
        result: Future[str],
        mode: Mode,
    ) -> None:
        try:
            executor.submit(self._complete, reply, result, mode)
        except RuntimeError:
            result.set_exception(TransportError("Orchestrator disconnected before dispatch"))

    def _complete(self, reply: Future[str], result: Future[str], mode: Mode) -> None:
        if reply.cancelled():
            result.set_exception(TransportError("Request was cancelled"))
            return
        error = reply.exception()
        if error is not None:
            logger.warning("Agent request failed: %s", error)
            result.set_exception(error)
            return

        dispatcher = self.dispatcher
        raw_text = reply.result()
        if dispatcher is None:
            result.set_result(raw_text)
            return
        try:
            output = dispatcher.parse_and_execute(raw_text, mode.structured)
        except Exception as error:  # noqa: BLE001
            logger.exception("Dispatching the agent reply failed")
            result.set_exception(error)
            return
        result.set_result(output)

    def _handle_status(self, connected: bool) -> None:
        self.state = ConnectionState.CONNECTED if connected else ConnectionState.DISCONNECTED
        for listener in list(self._status_listeners):
            listener(connected)

    def _handle_raw_response(self, raw_text: str) -> None:
        self.last_raw_response = raw_text

    def _handle_prompt_change(self) -> None:
        logger.info("System prompt changed; the next request will use the new prompt")
