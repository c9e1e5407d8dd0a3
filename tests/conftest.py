"""Shared test fixtures."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from agent_relay.commands.dispatcher import CommandDispatcher
from agent_relay.commands.handlers import HandlerContext
from agent_relay.commands.paths import Workspace
from agent_relay.prompt import PromptComposer
from agent_relay.transport.echo_agent import respond_pending


@pytest.fixture()
def workspace(tmp_path: Path) -> Workspace:
    (tmp_path / "Assets").mkdir()
    return Workspace(project_root=tmp_path)


@pytest.fixture()
def prompt(tmp_path: Path) -> PromptComposer:
    prompts_dir = tmp_path / "Assets" / "Prompts"
    prompts_dir.mkdir(parents=True, exist_ok=True)
    (prompts_dir / "SystemPrompt.txt").write_text("You edit the project.", "utf-8")
    (prompts_dir / "FixedRules.txt").write_text("Reply with JSON commands.", "utf-8")
    return PromptComposer(
        main_prompt_path=prompts_dir / "SystemPrompt.txt",
        fixed_rules_path=prompts_dir / "FixedRules.txt",
    )


@pytest.fixture()
def dispatcher(workspace: Workspace, prompt: PromptComposer) -> CommandDispatcher:
    return CommandDispatcher(HandlerContext(workspace=workspace, prompt=prompt))


@pytest.fixture()
def message_dir(tmp_path: Path) -> Path:
    path = tmp_path / "messages"
    path.mkdir()
    return path


@pytest.fixture()
def echo_responder(message_dir: Path):
    """Answer every request file in ``message_dir`` from a background thread."""

    stop = threading.Event()

    def _serve() -> None:
        while not stop.is_set():
            respond_pending(message_dir)
            stop.wait(0.01)

    thread = threading.Thread(target=_serve, daemon=True, name="echo-responder")
    thread.start()
    yield message_dir
    stop.set()
    thread.join(timeout=2)


@pytest.fixture()
def relay_env(tmp_path: Path, message_dir: Path, monkeypatch) -> Path:
    """Point every ``AGENT_RELAY_*`` setting at the test's temporary tree."""

    monkeypatch.setenv("AGENT_RELAY_PROJECT_ROOT", str(tmp_path))
    monkeypatch.setenv("AGENT_RELAY_MESSAGE_DIR", str(message_dir))
    monkeypatch.setenv("AGENT_RELAY_POLL_INTERVAL_SECONDS", "0.02")
    monkeypatch.setenv("AGENT_RELAY_REQUEST_TIMEOUT_SECONDS", "10")
    for name in (
        "AGENT_RELAY_ROOT_FOLDER",
        "AGENT_RELAY_MAIN_PROMPT_PATH",
        "AGENT_RELAY_FIXED_RULES_PATH",
        "AGENT_RELAY_LAUNCHER_COMMAND",
        "AGENT_RELAY_PROCESS_NAME",
        "AGENT_RELAY_CLEANUP_ON_START",
        "AGENT_RELAY_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path
