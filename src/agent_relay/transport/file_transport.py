"""Transport backed by the file message broker."""

from __future__ import annotations

import logging
from concurrent.futures import Future

from agent_relay.config import ConfigurationError
from agent_relay.transport.base import ResponseCallback, StatusCallback, TransportError
from agent_relay.transport.broker import FileMessageBroker

logger = logging.getLogger(__name__)

AGENT_ERROR_PREFIX = "AGENT_ERROR:"


class FileTransport:
    """Sends prompts to the external process through request/response files."""

    def __init__(self, broker: FileMessageBroker) -> None:
        self.broker = broker
        self._connected = False
        self._status_callback: StatusCallback | None = None
        self._response_callback: ResponseCallback | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    def on_status(self, callback: StatusCallback | None) -> None:
        self._status_callback = callback
        if callback is not None:
            callback(self._connected)

    def on_response(self, callback: ResponseCallback | None) -> None:
        self._response_callback = callback

    def connect(self) -> None:
        try:
            self.broker.start()
        except ConfigurationError as error:
            logger.error("File transport could not start: %s", error)
            self._set_connected(False)
            raise
        self._set_connected(self.broker.is_running)

    def disconnect(self) -> None:
        self.broker.stop()
        self._set_connected(False)

    def send_text(self, text: str) -> Future[str]:
        result: Future[str] = Future()
        if not self._connected:
            result.set_exception(TransportError("Cannot send: transport is not connected."))
            return result

        def _relay(reply: Future[str]) -> None:
            if reply.cancelled():
                result.set_exception(TransportError("Request dropped: transport disconnected."))
                return
            error = reply.exception()
            if error is not None:
                result.set_exception(error)
                return
            text_reply = reply.result()
            if text_reply.startswith(AGENT_ERROR_PREFIX):
                detail = text_reply[len(AGENT_ERROR_PREFIX) :].strip()
                result.set_exception(TransportError(f"External agent failed: {detail}"))
                return
            if self._response_callback is not None:
                self._response_callback(text_reply)
            result.set_result(text_reply)

        self.broker.submit(text).add_done_callback(_relay)
        return result

    def _set_connected(self, connected: bool) -> None:
        self._connected = connected
        if self._status_callback is not None:
            self._status_callback(connected)
