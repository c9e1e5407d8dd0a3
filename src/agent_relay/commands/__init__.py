"""Command extraction, dispatch and filesystem handlers."""

from agent_relay.commands.dispatcher import CommandDispatcher, CommandParseError
from agent_relay.commands.handlers import HandlerContext, HandlerError
from agent_relay.commands.models import (
    Command,
    CommandResult,
    CommandStatus,
    DirectoryEntry,
    DirectoryListing,
    EntryKind,
    parse_result_envelope,
)
from agent_relay.commands.paths import Workspace, normalize_path

__all__ = [
    "Command",
    "CommandDispatcher",
    "CommandParseError",
    "CommandResult",
    "CommandStatus",
    "DirectoryEntry",
    "DirectoryListing",
    "EntryKind",
    "HandlerContext",
    "HandlerError",
    "Workspace",
    "normalize_path",
    "parse_result_envelope",
]
