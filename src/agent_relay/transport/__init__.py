"""Transports connecting the orchestrator to an agent service."""

from agent_relay.transport.base import Transport, TransportError
from agent_relay.transport.broker import FileMessageBroker
from agent_relay.transport.file_transport import FileTransport
from agent_relay.transport.launcher import ProcessLauncher

__all__ = [
    "FileMessageBroker",
    "FileTransport",
    "ProcessLauncher",
    "Transport",
    "TransportError",
]
