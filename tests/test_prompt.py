from __future__ import annotations

from pathlib import Path

import allure
import pytest

from agent_relay.config import ConfigurationError
from agent_relay.models import Mode
from agent_relay.prompt import RULES_SEPARATOR, USER_REQUEST_SEPARATOR, PromptComposer

pytestmark = [
    allure.epic("Prompt"),
    allure.feature("Prompt Composition"),
]


def test_compose_places_fixed_rules_last(prompt: PromptComposer) -> None:
    assert prompt.compose() == "You edit the project." + RULES_SEPARATOR + "Reply with JSON commands."


def test_preamble_is_empty_while_chatting(prompt: PromptComposer) -> None:
    assert prompt.build_request_preamble(Mode.CHATTING) == ""
    assert prompt.build_request_preamble(Mode.CODING).endswith(USER_REQUEST_SEPARATOR)
    assert prompt.build_request_preamble(Mode.SIMULATION).startswith("You edit the project.")


def test_change_prompt_persists_and_notifies(prompt: PromptComposer) -> None:
    calls: list[str] = []

    def _listener() -> None:
        calls.append(prompt.main_prompt)

    prompt.add_listener(_listener)
    prompt.add_listener(_listener)
    prompt.change_prompt("New instructions.")

    assert calls == ["New instructions."]
    assert prompt.prompt_path.read_text("utf-8") == "New instructions."
    assert prompt.compose().startswith("New instructions." + RULES_SEPARATOR)
    assert not list(prompt.prompt_path.parent.glob(".*.tmp"))

    prompt.remove_listener(_listener)
    prompt.change_prompt("Again.")
    assert calls == ["New instructions."]


def test_change_prompt_rejects_empty_content(prompt: PromptComposer) -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        prompt.change_prompt("")


def test_fixed_rules_are_read_once(prompt: PromptComposer) -> None:
    first = prompt.fixed_rules
    prompt.fixed_rules_path.write_text("changed on disk", "utf-8")

    assert prompt.fixed_rules == first


def test_missing_main_prompt_is_empty(tmp_path: Path) -> None:
    rules = tmp_path / "FixedRules.txt"
    rules.write_text("rules", "utf-8")
    composer = PromptComposer(main_prompt_path=tmp_path / "absent.txt", fixed_rules_path=rules)

    assert composer.compose() == RULES_SEPARATOR + "rules"


def test_missing_fixed_rules_is_configuration_error(tmp_path: Path) -> None:
    composer = PromptComposer(
        main_prompt_path=tmp_path / "SystemPrompt.txt",
        fixed_rules_path=tmp_path / "absent.txt",
    )

    with pytest.raises(ConfigurationError, match="Fixed rules file not found"):
        composer.compose()


def test_change_prompt_creates_missing_directory(tmp_path: Path) -> None:
    rules = tmp_path / "FixedRules.txt"
    rules.write_text("rules", "utf-8")
    composer = PromptComposer(
        main_prompt_path=tmp_path / "new" / "SystemPrompt.txt",
        fixed_rules_path=rules,
    )

    composer.change_prompt("hello")

    assert (tmp_path / "new" / "SystemPrompt.txt").read_text("utf-8") == "hello"
