"""Transport interface between the orchestrator and an agent service."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from typing import Protocol

StatusCallback = Callable[[bool], None]
ResponseCallback = Callable[[str], None]


class TransportError(RuntimeError):
    """Transport failure with retryability hint."""

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class Transport(Protocol):
    """Capability implemented by agent transports."""

    def connect(self) -> None:
        """Open the channel and report status through the status callback."""

    def disconnect(self) -> None:
        """Close the channel; safe to call repeatedly."""

    def send_text(self, text: str) -> Future[str]:
        """Send a full prompt and return a future for the raw reply."""

    def on_status(self, callback: StatusCallback | None) -> None:
        """Register the connected/disconnected listener."""

    def on_response(self, callback: ResponseCallback | None) -> None:
        """Register the listener called with every raw reply."""
