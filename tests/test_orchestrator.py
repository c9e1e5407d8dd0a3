from __future__ import annotations

import json
from concurrent.futures import Future
from pathlib import Path

import allure
import pytest

from agent_relay.commands.dispatcher import CommandDispatcher
from agent_relay.commands.models import CommandStatus, parse_result_envelope
from agent_relay.config import ConfigurationError, Settings
from agent_relay.models import ConnectionState, Mode
from agent_relay.orchestrator import Orchestrator
from agent_relay.prompt import USER_REQUEST_SEPARATOR, PromptComposer
from agent_relay.services import build_components
from agent_relay.transport.base import TransportError

pytestmark = [
    allure.epic("Relay Runtime"),
    allure.feature("Orchestrator"),
]


class _ScriptedTransport:
    """In-memory transport answering every prompt with a scripted reply."""

    def __init__(self, reply: str | Exception = "") -> None:
        self.reply = reply
        self.sent: list[str] = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self._status = None
        self._response = None

    def connect(self) -> None:
        self.connect_calls += 1
        if self._status is not None:
            self._status(True)

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        if self._status is not None:
            self._status(False)

    def send_text(self, text: str) -> Future[str]:
        self.sent.append(text)
        future: Future[str] = Future()
        if isinstance(self.reply, Exception):
            future.set_exception(self.reply)
            return future
        if self._response is not None:
            self._response(self.reply)
        future.set_result(self.reply)
        return future

    def on_status(self, callback) -> None:
        self._status = callback
        if callback is not None:
            callback(False)

    def on_response(self, callback) -> None:
        self._response = callback


def _commands(*items: tuple[str, dict]) -> str:
    return json.dumps(
        {"commands": [{"functionName": n, "arguments": json.dumps(a)} for n, a in items]},
    )


def test_connect_without_transport_is_configuration_error(
    dispatcher: CommandDispatcher,
) -> None:
    orchestrator = Orchestrator(transport=None, dispatcher=dispatcher)

    with pytest.raises(ConfigurationError, match="no transport"):
        orchestrator.connect()
    assert orchestrator.state is ConnectionState.DISCONNECTED


def test_send_before_connect_fails_future(dispatcher: CommandDispatcher) -> None:
    orchestrator = Orchestrator(transport=_ScriptedTransport(), dispatcher=dispatcher)

    future = orchestrator.send_user_message("hi", Mode.CODING)

    assert isinstance(future.exception(timeout=1), ConfigurationError)


def test_chatting_sends_raw_text_and_returns_raw_reply(
    dispatcher: CommandDispatcher,
    prompt: PromptComposer,
) -> None:
    reply = _commands(("CreateDirectory", {"directoryPath": "ShouldNotExist"}))
    transport = _ScriptedTransport(reply)
    orchestrator = Orchestrator(transport=transport, dispatcher=dispatcher, prompt=prompt)
    orchestrator.connect()
    try:
        output = orchestrator.ask("just chatting", Mode.CHATTING, timeout=5)
    finally:
        orchestrator.disconnect()

    assert transport.sent == ["just chatting"]
    assert output == reply
    assert not (dispatcher.context.workspace.project_root / "Assets/ShouldNotExist").exists()


def test_coding_prefixes_prompt_and_executes_commands(
    dispatcher: CommandDispatcher,
    prompt: PromptComposer,
) -> None:
    transport = _ScriptedTransport(_commands(("CreateDirectory", {"directoryPath": "Levels"})))
    orchestrator = Orchestrator(transport=transport, dispatcher=dispatcher, prompt=prompt)
    statuses: list[bool] = []
    orchestrator.on_status(statuses.append)
    orchestrator.connect()
    assert orchestrator.state is ConnectionState.CONNECTED
    try:
        output = orchestrator.ask("make a levels folder", Mode.CODING, timeout=5)
    finally:
        orchestrator.disconnect()

    assert transport.sent[0].startswith("You edit the project.")
    assert transport.sent[0].endswith(USER_REQUEST_SEPARATOR + "make a levels folder")
    results = parse_result_envelope(output)
    assert results[0].status is CommandStatus.SUCCESS
    assert (dispatcher.context.workspace.project_root / "Assets/Levels").is_dir()
    assert orchestrator.last_raw_response == transport.reply
    assert statuses[-1] is False
    assert True in statuses


def test_transport_failure_propagates(dispatcher: CommandDispatcher) -> None:
    transport = _ScriptedTransport(TransportError("agent crashed"))
    orchestrator = Orchestrator(transport=transport, dispatcher=dispatcher)
    orchestrator.connect()
    try:
        with pytest.raises(TransportError, match="agent crashed"):
            orchestrator.ask("anything", Mode.CODING, timeout=5)
    finally:
        orchestrator.disconnect()


def test_simulate_bypasses_transport(dispatcher: CommandDispatcher) -> None:
    transport = _ScriptedTransport()
    orchestrator = Orchestrator(transport=transport, dispatcher=dispatcher)

    output = orchestrator.simulate(_commands(("CreateFile", {"filePath": "a.txt"})))

    assert transport.sent == []
    assert parse_result_envelope(output)[0].status is CommandStatus.SUCCESS
    assert orchestrator.mode is Mode.SIMULATION


def test_disconnect_is_idempotent(dispatcher: CommandDispatcher) -> None:
    transport = _ScriptedTransport()
    orchestrator = Orchestrator(transport=transport, dispatcher=dispatcher)
    orchestrator.connect()

    orchestrator.disconnect()
    orchestrator.disconnect()

    assert transport.disconnect_calls == 1
    assert orchestrator.state is ConnectionState.DISCONNECTED


def test_end_to_end_through_file_broker(
    relay_env: Path,
    prompt: PromptComposer,
    echo_responder: Path,
) -> None:
    (relay_env / "Assets").mkdir(exist_ok=True)
    components = build_components(Settings.from_env())
    orchestrator = components.orchestrator
    orchestrator.connect()
    try:
        # the echo agent returns the whole prompt; the command block sits at its end
        output = orchestrator.ask(
            _commands(("CreateDirectory", {"directoryPath": "FromAgent"})),
            Mode.CODING,
            timeout=10,
        )
    finally:
        orchestrator.disconnect()

    assert parse_result_envelope(output)[0].status is CommandStatus.SUCCESS
    assert (relay_env / "Assets/FromAgent").is_dir()
    assert list(echo_responder.glob("*.txt")) == []


class _FailingDispatcher:
    def parse_and_execute(self, raw_text: str, structured: bool) -> str:
        raise RuntimeError("dispatcher blew up")


def test_dispatcher_failure_fails_the_future() -> None:
    orchestrator = Orchestrator(
        transport=_ScriptedTransport('{"commands": []}'),
        dispatcher=_FailingDispatcher(),
    )
    orchestrator.connect()
    try:
        future = orchestrator.send_user_message("anything", Mode.CODING)
        with pytest.raises(RuntimeError, match="dispatcher blew up"):
            future.result(timeout=3)
    finally:
        orchestrator.disconnect()


def test_deeply_nested_reply_resolves_to_parse_error(dispatcher: CommandDispatcher) -> None:
    nested = '{"commands": ' + "[" * 100_000 + "]" * 100_000 + "}"
    orchestrator = Orchestrator(transport=_ScriptedTransport(nested), dispatcher=dispatcher)
    orchestrator.connect()
    try:
        output = orchestrator.send_user_message("x", Mode.CODING).result(timeout=3)
    finally:
        orchestrator.disconnect()

    results = parse_result_envelope(output)
    assert [result.status for result in results] == [CommandStatus.ERROR]


def test_missing_fixed_rules_fails_the_future_not_the_call(
    dispatcher: CommandDispatcher,
    prompt: PromptComposer,
) -> None:
    prompt.fixed_rules_path.unlink()
    transport = _ScriptedTransport("unused")
    orchestrator = Orchestrator(transport=transport, dispatcher=dispatcher, prompt=prompt)
    orchestrator.connect()
    try:
        future = orchestrator.send_user_message("hello", Mode.CODING)
    finally:
        orchestrator.disconnect()

    assert isinstance(future.exception(timeout=1), ConfigurationError)
    assert transport.sent == []
