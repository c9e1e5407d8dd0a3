"""Filesystem command handlers invoked by the dispatcher."""

from __future__ import annotations

import json
import logging
import os
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from agent_relay.commands.models import (
    CommandResult,
    DirectoryEntry,
    DirectoryListing,
    EntryKind,
)
from agent_relay.commands.paths import Workspace

if TYPE_CHECKING:
    from agent_relay.prompt import PromptComposer

logger = logging.getLogger(__name__)


class HandlerError(RuntimeError):
    """Operation-specific failure, converted into that command's ERROR result."""


@dataclass(slots=True)
class HandlerContext:
    """Collaborators shared by all handlers of one dispatcher."""

    workspace: Workspace
    prompt: PromptComposer | None = None


Handler = Callable[[HandlerContext, dict[str, Any]], CommandResult]


def create_directory(context: HandlerContext, path: str | None) -> CommandResult:
    name = "CreateDirectory"
    if not path:
        return CommandResult.error(name, "Directory path must not be empty.")

    relative = context.workspace.normalize(path)
    target = context.workspace.resolve(relative)
    if target.is_dir():
        return CommandResult.success(name, f"Directory already exists at: {relative}")

    try:
        target.mkdir(parents=True, exist_ok=False)
    except OSError as error:
        return CommandResult.error(name, f"Could not create directory {relative}: {error}")
    return CommandResult.success(name, f"Directory created at: {relative}")


def delete_path(context: HandlerContext, path: str | None) -> CommandResult:
    name = "DeletePath"
    if not path:
        return CommandResult.error(name, "Path to delete must not be empty.")

    relative = context.workspace.normalize(path)
    target = context.workspace.resolve(relative)
    if not target.exists():
        return CommandResult.error(name, f"Path not found: {relative}")

    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
        sidecar = target.with_name(target.name + context.workspace.sidecar_suffix)
        if context.workspace.sidecar_suffix and sidecar.is_file():
            sidecar.unlink()
    except OSError as error:
        return CommandResult.error(
            name,
            f"Could not delete {relative} (is it in use?): {error}",
        )
    return CommandResult.success(name, f"Deleted: {relative}")


def create_file(context: HandlerContext, path: str | None, content: str | None) -> CommandResult:
    name = "CreateFile"
    if not path:
        return CommandResult.error(name, "File path must not be empty.")

    relative = context.workspace.normalize(path)
    target = context.workspace.resolve(relative)
    text = content or ""
    try:
        existed = target.is_file()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, "utf-8")
    except OSError as error:
        return CommandResult.error(name, f"Could not write file {relative}: {error}")

    action = "updated" if existed else "created"
    return CommandResult.success(
        name,
        f"File {action} at: {relative} (size: {len(text)} characters)",
    )


def read_file(context: HandlerContext, path: str | None) -> CommandResult:
    name = "ReadFile"
    if not path:
        return CommandResult.error(name, "File path must not be empty.")

    relative = context.workspace.normalize(path)
    target = context.workspace.resolve(relative)
    if target.is_dir():
        return CommandResult.error(
            name,
            f"Path is a directory, use ListContents instead: {relative}",
        )
    if not target.is_file():
        return CommandResult.error(name, f"File not found: {relative}")

    try:
        content = target.read_text("utf-8")
    except (OSError, UnicodeDecodeError) as error:
        return CommandResult.error(name, f"Could not read file {relative}: {error}")
    return CommandResult.success(name, f"File read: {relative}", file_content=content)


def list_contents(context: HandlerContext, path: str | None) -> CommandResult:
    name = "ListContents"
    relative = context.workspace.normalize(path or "")
    target = context.workspace.resolve(relative)
    if not target.is_dir():
        return CommandResult.error(name, f"Directory not found: {relative}")

    try:
        listing = _list_recursive(context.workspace, relative)
    except OSError as error:
        return CommandResult.error(name, f"Could not list {relative}: {error}")
    return CommandResult.success(
        name,
        f"Directory tree listed: {relative}",
        directory_listing=listing,
    )


def set_prompt(context: HandlerContext, content: str | None) -> CommandResult:
    name = "SetPrompt"
    if context.prompt is None:
        return CommandResult.error(name, "No prompt store is configured.")
    if not content:
        return CommandResult.error(name, "Prompt content is missing or empty.")

    try:
        context.prompt.change_prompt(content)
    except OSError as error:
        return CommandResult.error(name, f"Could not write the new prompt: {error}")
    return CommandResult.success(
        name,
        f"System prompt updated in: {context.prompt.prompt_path}. "
        "It applies from the next request.",
    )


def _list_recursive(workspace: Workspace, relative: str) -> DirectoryListing:
    directories: list[str] = []
    files: list[str] = []
    with os.scandir(workspace.resolve(relative)) as iterator:
        for item in iterator:
            if item.is_dir():
                directories.append(item.name)
            elif not workspace.is_sidecar(item.name):
                files.append(item.name)

    directories.sort()
    files.sort()
    entries = [DirectoryEntry(name=item, kind=EntryKind.DIRECTORY) for item in directories]
    entries.extend(DirectoryEntry(name=item, kind=EntryKind.FILE) for item in files)
    return DirectoryListing(
        path=relative,
        entries=tuple(entries),
        subdirectories=tuple(
            _list_recursive(workspace, f"{relative}/{item}") for item in directories
        ),
    )


def decode_arguments(arguments: str | dict[str, Any]) -> dict[str, Any]:
    """Decode the JSON-encoded argument blob of a command."""

    if isinstance(arguments, dict):
        return arguments
    if not arguments.strip():
        return {}
    decoded = json.loads(arguments)
    if not isinstance(decoded, dict):
        raise HandlerError("arguments must decode to a JSON object")
    return decoded


def _optional_str(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise HandlerError(f"argument '{key}' must be a string")
    return value


HANDLERS: dict[str, Handler] = {
    "CreateDirectory": lambda ctx, args: create_directory(ctx, _optional_str(args, "directoryPath")),
    "DeletePath": lambda ctx, args: delete_path(ctx, _optional_str(args, "pathToDelete")),
    "CreateFile": lambda ctx, args: create_file(
        ctx,
        _optional_str(args, "filePath"),
        _optional_str(args, "fileContent"),
    ),
    "ReadFile": lambda ctx, args: read_file(ctx, _optional_str(args, "filePath")),
    "ListContents": lambda ctx, args: list_contents(ctx, _optional_str(args, "directoryPath")),
    "SetPrompt": lambda ctx, args: set_prompt(ctx, _optional_str(args, "promptContent")),
}


def execute_command(
    context: HandlerContext,
    function_name: str,
    arguments: str | dict[str, Any],
) -> CommandResult:
    """Run one command; every failure becomes an ERROR result."""

    handler = HANDLERS.get(function_name)
    if handler is None:
        return CommandResult.error(function_name, f"Unknown function '{function_name}'.")

    try:
        args = decode_arguments(arguments)
    except (json.JSONDecodeError, HandlerError) as error:
        return CommandResult.error(function_name, f"Could not decode arguments: {error}")
    except RecursionError:
        return CommandResult.error(
            function_name,
            "Could not decode arguments: JSON nesting is too deep",
        )

    try:
        return handler(context, args)
    except HandlerError as error:
        return CommandResult.error(function_name, f"Invalid arguments: {error}")
    except Exception as error:  # noqa: BLE001
        logger.exception("Handler %s failed unexpectedly", function_name)
        return CommandResult.error(function_name, f"Internal error: {error}")
