"""Controllers for relay CLI commands."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path

from agent_relay.config import ConfigurationError, Settings
from agent_relay.models import Mode
from agent_relay.prompt import PromptComposer
from agent_relay.services import build_components, build_dispatcher
from agent_relay.transport.broker import FileMessageBroker
from agent_relay.transport.echo_agent import respond_pending


@dataclass(slots=True)
class RelaySendCommand:
    """CLI input for one round trip through the external agent."""

    project_root: Path | None
    text: str
    mode: Mode
    timeout_seconds: float | None


@dataclass(slots=True)
class RelaySimulateCommand:
    """CLI input for local dispatch without transport."""

    project_root: Path | None
    text: str
    mode: Mode


@dataclass(slots=True)
class PromptShowCommand:
    """CLI input for printing the composed prompt."""

    project_root: Path | None
    mode: Mode


@dataclass(slots=True)
class PromptSetCommand:
    """CLI input for replacing the editable prompt."""

    project_root: Path | None
    content: str


@dataclass(slots=True)
class EchoAgentCommand:
    """CLI input for running the stand-in external process."""

    once: bool
    interval_seconds: float
    max_seconds: float | None


class RelayCliController:
    """Coordinates broker, dispatcher and prompt CLI operations."""

    def send(self, command: RelaySendCommand) -> list[str]:
        settings = Settings.from_env(project_root=command.project_root)
        if command.timeout_seconds is not None:
            settings.broker.request_timeout_seconds = command.timeout_seconds
        components = build_components(settings)
        orchestrator = components.orchestrator
        orchestrator.connect()
        try:
            output = orchestrator.ask(command.text, command.mode)
        finally:
            orchestrator.disconnect()
        return [output]

    def simulate(self, command: RelaySimulateCommand) -> list[str]:
        settings = Settings.from_env(project_root=command.project_root)
        dispatcher = build_dispatcher(settings, PromptComposer.from_settings(settings.prompt))
        return [dispatcher.parse_and_execute(command.text, command.mode.structured)]

    def sweep(self) -> list[str]:
        settings = Settings.from_env()
        message_dir = settings.broker.message_dir
        if not message_dir.is_dir():
            raise ConfigurationError(f"Message directory does not exist: {message_dir}")
        removed = FileMessageBroker.from_settings(settings.broker).sweep_orphans()
        return [f"Removed {removed} leftover file(s) from {message_dir}"]

    def show_prompt(self, command: PromptShowCommand) -> list[str]:
        settings = Settings.from_env(project_root=command.project_root)
        prompt = PromptComposer.from_settings(settings.prompt)
        preamble = prompt.build_request_preamble(command.mode)
        if not preamble:
            return ["(chatting mode sends the user text without a system prompt)"]
        return [preamble]

    def set_prompt(self, command: PromptSetCommand) -> list[str]:
        if not command.content.strip():
            raise ConfigurationError("Prompt content must not be empty.")
        settings = Settings.from_env(project_root=command.project_root)
        prompt = PromptComposer.from_settings(settings.prompt)
        prompt.change_prompt(command.content)
        return [f"System prompt written to {prompt.prompt_path}"]

    def echo_agent(self, command: EchoAgentCommand) -> list[str]:
        settings = Settings.from_env()
        message_dir = settings.broker.message_dir
        message_dir.mkdir(parents=True, exist_ok=True)
        if command.once:
            answered = respond_pending(message_dir)
            return [f"Echo agent answered {answered} request(s) in {message_dir}"]

        answered = 0
        started = time.monotonic()
        while command.max_seconds is None or time.monotonic() - started < command.max_seconds:
            answered += respond_pending(message_dir)
            time.sleep(command.interval_seconds)
        return [f"Echo agent answered {answered} request(s) in {message_dir}"]
