"""CLI entrypoint for agent-relay."""

import logging
from pathlib import Path

import rich_click as click

from agent_relay import __version__
from agent_relay.config import ConfigurationError, Settings
from agent_relay.controllers import (
    EchoAgentCommand,
    PromptSetCommand,
    PromptShowCommand,
    RelayCliController,
    RelaySendCommand,
    RelaySimulateCommand,
)
from agent_relay.models import Mode
from agent_relay.transport.base import TransportError

click.rich_click.USE_MARKDOWN = True
RELAY_CONTROLLER = RelayCliController()

_MODE_CHOICE = click.Choice([mode.value for mode in Mode], case_sensitive=False)
_SEND_MODE_CHOICE = click.Choice(
    [mode.value for mode in Mode if mode is not Mode.SIMULATION],
    case_sensitive=False,
)
_PROJECT_ROOT_OPTION = click.option(
    "--project-root",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Project root the commands operate on. Defaults to AGENT_RELAY_PROJECT_ROOT or '.'.",
)


@click.group()
@click.version_option(version=__version__, prog_name="agent-relay")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level. Defaults to AGENT_RELAY_LOG_LEVEL or WARNING.",
)
def agent_relay(log_level: str | None) -> None:
    """Relay agent requests through the file transport and execute their commands."""

    try:
        level = (log_level or Settings.from_env().log_level).upper()
    except ConfigurationError as error:
        raise click.ClickException(str(error)) from error
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@agent_relay.command("send")
@_PROJECT_ROOT_OPTION
@click.option(
    "--mode",
    type=_SEND_MODE_CHOICE,
    default=Mode.CODING.value,
    show_default=True,
    help="chatting returns the raw reply; coding executes the commands in the reply.",
)
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Give up waiting for the reply after this many seconds (0 waits forever).",
)
@click.argument("text")
def send(project_root: Path | None, mode: str, timeout_seconds: float | None, text: str) -> None:
    """Send TEXT to the external agent and print the final result."""

    try:
        lines = RELAY_CONTROLLER.send(
            RelaySendCommand(
                project_root=project_root,
                text=text,
                mode=Mode(mode.lower()),
                timeout_seconds=timeout_seconds,
            ),
        )
    except (ConfigurationError, TransportError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@agent_relay.command("simulate")
@_PROJECT_ROOT_OPTION
@click.option(
    "--mode",
    type=_MODE_CHOICE,
    default=Mode.SIMULATION.value,
    show_default=True,
    help="Mode used to interpret the reply.",
)
@click.option(
    "--file",
    "reply_file",
    type=click.Path(path_type=Path, dir_okay=False, exists=True),
    default=None,
    help="Read the simulated agent reply from a file.",
)
@click.argument("text", required=False)
def simulate(
    project_root: Path | None,
    mode: str,
    reply_file: Path | None,
    text: str | None,
) -> None:
    """Execute a simulated agent reply locally, without the transport."""

    if reply_file is not None:
        text = reply_file.read_text("utf-8")
    if text is None:
        raise click.UsageError("Provide TEXT or --file.")
    _emit_lines(
        RELAY_CONTROLLER.simulate(
            RelaySimulateCommand(project_root=project_root, text=text, mode=Mode(mode.lower())),
        ),
    )


@agent_relay.command("sweep")
def sweep() -> None:
    """Delete request/response files left over in the message directory."""

    try:
        lines = RELAY_CONTROLLER.sweep()
    except ConfigurationError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@agent_relay.group()
def prompt() -> None:
    """System prompt commands."""


@prompt.command("show")
@_PROJECT_ROOT_OPTION
@click.option(
    "--mode",
    type=_MODE_CHOICE,
    default=Mode.CODING.value,
    show_default=True,
    help="Mode to compose the prompt for.",
)
def prompt_show(project_root: Path | None, mode: str) -> None:
    """Print the text placed before the user's message."""

    try:
        lines = RELAY_CONTROLLER.show_prompt(
            PromptShowCommand(project_root=project_root, mode=Mode(mode.lower())),
        )
    except ConfigurationError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@prompt.command("set")
@_PROJECT_ROOT_OPTION
@click.argument("content")
def prompt_set(project_root: Path | None, content: str) -> None:
    """Replace the editable system prompt with CONTENT."""

    try:
        lines = RELAY_CONTROLLER.set_prompt(
            PromptSetCommand(project_root=project_root, content=content),
        )
    except ConfigurationError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@agent_relay.command("echo-agent")
@click.option("--once", is_flag=True, default=False, help="Answer pending requests and exit.")
@click.option(
    "--interval-seconds",
    type=click.FloatRange(min=0.01),
    default=0.2,
    show_default=True,
    help="Polling interval for new requests.",
)
@click.option(
    "--max-seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Stop after this many seconds (runs until interrupted by default).",
)
def echo_agent(once: bool, interval_seconds: float, max_seconds: float | None) -> None:
    """Run a stand-in external agent that echoes each request back."""

    _emit_lines(
        RELAY_CONTROLLER.echo_agent(
            EchoAgentCommand(
                once=once,
                interval_seconds=interval_seconds,
                max_seconds=max_seconds,
            ),
        ),
    )


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    agent_relay()
