"""Shared enums for relay modes and connection lifecycle."""

from __future__ import annotations

from enum import Enum


class Mode(str, Enum):
    """How an agent reply is treated.

    Chatting never runs commands; Coding and Simulation always do, Simulation
    feeding text to the dispatcher without going through the transport.
    """

    CHATTING = "chatting"
    CODING = "coding"
    SIMULATION = "simulation"

    @property
    def structured(self) -> bool:
        return self is not Mode.CHATTING


class ConnectionState(str, Enum):
    """Orchestrator connection lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
