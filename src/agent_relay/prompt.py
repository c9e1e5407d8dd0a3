"""System prompt storage and final prompt assembly."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path

from agent_relay.config import ConfigurationError, PromptSettings
from agent_relay.models import Mode

logger = logging.getLogger(__name__)

RULES_SEPARATOR = "\n\n--- CRITICAL RULES AND TOOLS (DO NOT EDIT BELOW) ---\n\n"
USER_REQUEST_SEPARATOR = "\n\n--- USER REQUEST ---\n\n"


class PromptComposer:
    """Owns the editable prompt file and the immutable fixed rules.

    Fixed rules are read once. The editable prompt is cached after the first
    read; ``change_prompt`` replaces the whole file and then the cache, so
    readers always see the last committed value.
    """

    def __init__(self, *, main_prompt_path: Path, fixed_rules_path: Path) -> None:
        self.prompt_path = main_prompt_path
        self.fixed_rules_path = fixed_rules_path
        self._lock = threading.Lock()
        self._fixed_rules: str | None = None
        self._cached_prompt: str | None = None
        self._listeners: list[Callable[[], None]] = []

    @classmethod
    def from_settings(cls, settings: PromptSettings) -> PromptComposer:
        return cls(
            main_prompt_path=settings.main_prompt_path,
            fixed_rules_path=settings.fixed_rules_path,
        )

    @property
    def fixed_rules(self) -> str:
        with self._lock:
            if self._fixed_rules is None:
                try:
                    self._fixed_rules = self.fixed_rules_path.read_text("utf-8")
                except FileNotFoundError as error:
                    raise ConfigurationError(
                        f"Fixed rules file not found: {self.fixed_rules_path}",
                    ) from error
            return self._fixed_rules

    @property
    def main_prompt(self) -> str:
        with self._lock:
            if self._cached_prompt is None:
                try:
                    self._cached_prompt = self.prompt_path.read_text("utf-8")
                except FileNotFoundError:
                    logger.warning("Prompt file %s not found, using empty prompt", self.prompt_path)
                    self._cached_prompt = ""
            return self._cached_prompt

    def compose(self) -> str:
        """Editable prompt followed by the fixed rules, rules last."""

        return self.main_prompt + RULES_SEPARATOR + self.fixed_rules

    def build_request_preamble(self, mode: Mode) -> str:
        """Text placed before the user's message; empty while chatting."""

        if not mode.structured:
            return ""
        return self.compose() + USER_REQUEST_SEPARATOR

    def change_prompt(self, content: str) -> None:
        """Persist a new editable prompt and notify listeners."""

        if not content:
            raise ValueError("Prompt content must not be empty.")

        with self._lock:
            self.prompt_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.prompt_path.with_name(f".{self.prompt_path.name}.tmp")
            tmp_path.write_text(content, "utf-8")
            os.replace(tmp_path, self.prompt_path)
            self._cached_prompt = content
            listeners = list(self._listeners)

        logger.info("System prompt updated in %s", self.prompt_path)
        for listener in listeners:
            listener()

    def add_listener(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)
