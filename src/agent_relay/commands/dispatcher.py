"""Command extraction and execution for raw agent replies."""

from __future__ import annotations

import json
import logging

from agent_relay.commands.handlers import HandlerContext, execute_command
from agent_relay.commands.models import (
    Command,
    CommandResult,
    ResultEnvelope,
    parse_command_list,
)

logger = logging.getLogger(__name__)

PARSE_COMMAND_NAME = "Parse"


class CommandParseError(ValueError):
    """Malformed command JSON; reported as a single ERROR result."""


def extract_json_block(text: str) -> str | None:
    """Return the slice from the first ``{`` to the last ``}`` inclusive.

    Best effort only: braces in the surrounding prose can widen the slice
    past the intended command block.
    """

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_commands(json_text: str) -> list[Command]:
    try:
        payload = json.loads(json_text)
    except json.JSONDecodeError as error:
        raise CommandParseError(str(error)) from error
    except RecursionError as error:
        raise CommandParseError("JSON nesting is too deep") from error
    try:
        return parse_command_list(payload)
    except (TypeError, ValueError) as error:
        raise CommandParseError(str(error)) from error


class CommandDispatcher:
    """Turns an agent reply into executed commands and a serialized result."""

    def __init__(self, context: HandlerContext) -> None:
        self.context = context

    def parse_and_execute(self, raw_text: str, structured: bool) -> str:
        """Return the serialized result envelope, or ``raw_text`` when nothing is executable."""

        if not raw_text:
            return _single(CommandResult.error(PARSE_COMMAND_NAME, "Empty response received."))
        if not structured:
            return raw_text

        json_text = extract_json_block(raw_text)
        if not json_text:
            start = raw_text.find("{")
            if start == -1:
                return raw_text
            # opening brace with no closing one after it: a truncated command block
            json_text = raw_text[start:]

        try:
            commands = parse_commands(json_text)
        except CommandParseError as error:
            logger.warning("Malformed command JSON from agent: %s", error)
            return _single(
                CommandResult.error(
                    PARSE_COMMAND_NAME,
                    'Malformed command JSON (expected {"commands": [...]}): ' f"{error}",
                ),
            )

        if not commands:
            return _single(
                CommandResult.warning(
                    PARSE_COMMAND_NAME,
                    "The JSON was valid but the 'commands' array is empty; nothing was executed.",
                ),
            )

        return ResultEnvelope(results=self.execute(commands)).to_json()

    def execute(self, commands: list[Command]) -> list[CommandResult]:
        """Run commands in order; a failing command never stops the next one."""

        results: list[CommandResult] = []
        for command in commands:
            result = execute_command(self.context, command.function_name, command.arguments)
            if result.is_error:
                logger.info("Command %s failed: %s", command.function_name, result.message)
            results.append(result)
        return results


def _single(result: CommandResult) -> str:
    return ResultEnvelope(results=[result]).to_json()
