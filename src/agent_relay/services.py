"""Wiring of settings into owned broker/dispatcher/orchestrator instances."""

from __future__ import annotations

from dataclasses import dataclass

from agent_relay.commands.dispatcher import CommandDispatcher
from agent_relay.commands.handlers import HandlerContext
from agent_relay.commands.paths import Workspace
from agent_relay.config import Settings
from agent_relay.orchestrator import Orchestrator
from agent_relay.prompt import PromptComposer
from agent_relay.transport.broker import FileMessageBroker
from agent_relay.transport.file_transport import FileTransport


@dataclass(slots=True)
class RelayComponents:
    """One fully wired set of collaborators."""

    broker: FileMessageBroker
    transport: FileTransport
    prompt: PromptComposer
    dispatcher: CommandDispatcher
    orchestrator: Orchestrator


def build_dispatcher(settings: Settings, prompt: PromptComposer | None = None) -> CommandDispatcher:
    return CommandDispatcher(
        HandlerContext(
            workspace=Workspace.from_settings(settings.workspace),
            prompt=prompt,
        ),
    )


def build_components(settings: Settings) -> RelayComponents:
    """Create explicit instances for one relay session (no process-wide state)."""

    settings.validate_for_broker()
    prompt = PromptComposer.from_settings(settings.prompt)
    dispatcher = build_dispatcher(settings, prompt)
    broker = FileMessageBroker.from_settings(settings.broker)
    transport = FileTransport(broker)
    orchestrator = Orchestrator(transport=transport, dispatcher=dispatcher, prompt=prompt)
    return RelayComponents(
        broker=broker,
        transport=transport,
        prompt=prompt,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
    )
