"""Command and result contracts exchanged with the agent."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CommandStatus(str, Enum):
    """Outcome of one executed command."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    WARNING = "WARNING"


class EntryKind(str, Enum):
    """Kind of a directory listing entry."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(slots=True)
class Command:
    """One operation requested by the agent, arguments not yet decoded."""

    function_name: str
    arguments: str | dict[str, Any] = ""


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    """One child of a listed directory."""

    name: str
    kind: EntryKind


@dataclass(frozen=True, slots=True)
class DirectoryListing:
    """Recursive snapshot of a directory tree."""

    path: str
    entries: tuple[DirectoryEntry, ...] = ()
    subdirectories: tuple[DirectoryListing, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "contents": [{"name": entry.name, "type": entry.kind.value} for entry in self.entries],
            "subdirectories": [sub.to_payload() for sub in self.subdirectories],
        }

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> DirectoryListing:
        path = raw.get("path")
        if not isinstance(path, str):
            raise TypeError("directoryListing.path must be a string")
        raw_entries = raw.get("contents") or []
        raw_subdirectories = raw.get("subdirectories") or []
        if not isinstance(raw_entries, list) or not isinstance(raw_subdirectories, list):
            raise TypeError("directoryListing.contents/subdirectories must be arrays")
        return cls(
            path=path,
            entries=tuple(
                DirectoryEntry(name=str(item["name"]), kind=EntryKind(item["type"]))
                for item in raw_entries
            ),
            subdirectories=tuple(cls.from_payload(item) for item in raw_subdirectories),
        )


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Typed result of one command; at most one of the payload fields is set."""

    command_name: str
    status: CommandStatus
    message: str
    file_content: str | None = None
    directory_listing: DirectoryListing | None = None

    @classmethod
    def success(cls, command_name: str, message: str, **payload: Any) -> CommandResult:
        return cls(command_name=command_name, status=CommandStatus.SUCCESS, message=message, **payload)

    @classmethod
    def error(cls, command_name: str, message: str) -> CommandResult:
        return cls(command_name=command_name, status=CommandStatus.ERROR, message=message)

    @classmethod
    def warning(cls, command_name: str, message: str) -> CommandResult:
        return cls(command_name=command_name, status=CommandStatus.WARNING, message=message)

    @property
    def is_error(self) -> bool:
        return self.status is CommandStatus.ERROR

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "commandName": self.command_name,
            "status": self.status.value,
            "message": self.message,
        }
        if self.file_content is not None:
            payload["fileContent"] = self.file_content
        if self.directory_listing is not None:
            payload["directoryListing"] = self.directory_listing.to_payload()
        return payload


@dataclass(slots=True)
class ResultEnvelope:
    """Top-level payload returned to the agent."""

    results: list[CommandResult] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(
            {"results": [result.to_payload() for result in self.results]},
            ensure_ascii=False,
            indent=2,
        )


def parse_command_list(payload: Any) -> list[Command]:
    """Validate a decoded ``{"commands": [...]}`` document into commands.

    A missing or null ``commands`` key is treated as an empty list.
    """

    if not isinstance(payload, dict):
        raise TypeError("Command payload must be a JSON object")
    raw_commands = payload.get("commands")
    if raw_commands is None:
        return []
    if not isinstance(raw_commands, list):
        raise TypeError("'commands' must be an array")

    commands: list[Command] = []
    for index, item in enumerate(raw_commands):
        if not isinstance(item, dict):
            raise TypeError(f"commands[{index}] must be an object")
        function_name = item.get("functionName")
        if not isinstance(function_name, str):
            raise TypeError(f"commands[{index}].functionName must be a string")
        arguments = item.get("arguments", "")
        if arguments is None:
            arguments = ""
        if not isinstance(arguments, str | dict):
            raise TypeError(f"commands[{index}].arguments must be a JSON string or object")
        commands.append(Command(function_name=function_name, arguments=arguments))
    return commands


def parse_result_envelope(text: str) -> list[CommandResult]:
    """Deserialize a ``{"results": [...]}`` document produced by the dispatcher."""

    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise TypeError("Result envelope must be a JSON object")
    raw_results = raw.get("results")
    if not isinstance(raw_results, list):
        raise TypeError("'results' must be an array")

    results: list[CommandResult] = []
    for item in raw_results:
        if not isinstance(item, dict):
            raise TypeError("result entry must be an object")
        listing_raw = item.get("directoryListing")
        results.append(
            CommandResult(
                command_name=str(item["commandName"]),
                status=CommandStatus(item["status"]),
                message=str(item.get("message", "")),
                file_content=item.get("fileContent"),
                directory_listing=(
                    DirectoryListing.from_payload(listing_raw) if listing_raw is not None else None
                ),
            ),
        )
    return results
