"""Runtime configuration for the broker, workspace and prompt files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(ValueError):
    """Missing or invalid wiring/configuration; fatal to the attempted operation only."""


@dataclass(slots=True)
class BrokerSettings:
    """File transport and polling settings."""

    message_dir: Path = Path(".agent_relay/messages")
    poll_interval_seconds: float = 0.5
    io_retry_attempts: int = 5
    io_retry_delay_seconds: float = 0.05
    request_timeout_seconds: float = 300.0
    stop_join_seconds: float = 0.5
    cleanup_on_start: bool = True
    launcher_command: str = ""
    process_name: str = ""


@dataclass(slots=True)
class WorkspaceSettings:
    """Project tree the command handlers operate on."""

    project_root: Path = Path(".")
    root_folder: str = "Assets"
    sidecar_suffix: str = ".meta"


@dataclass(slots=True)
class PromptSettings:
    """Locations of the editable system prompt and the fixed rules."""

    main_prompt_path: Path = Path("Assets/Prompts/SystemPrompt.txt")
    fixed_rules_path: Path = Path("Assets/Prompts/FixedRules.txt")


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    broker: BrokerSettings = field(default_factory=BrokerSettings)
    workspace: WorkspaceSettings = field(default_factory=WorkspaceSettings)
    prompt: PromptSettings = field(default_factory=PromptSettings)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, project_root: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        root = project_root or Path(os.getenv("AGENT_RELAY_PROJECT_ROOT", "."))
        root_folder = os.getenv("AGENT_RELAY_ROOT_FOLDER", "Assets").strip() or "Assets"
        prompts_dir = root / root_folder / "Prompts"
        return cls(
            broker=BrokerSettings(
                message_dir=Path(
                    os.getenv("AGENT_RELAY_MESSAGE_DIR", ".agent_relay/messages"),
                ),
                poll_interval_seconds=float(
                    os.getenv("AGENT_RELAY_POLL_INTERVAL_SECONDS", "0.5"),
                ),
                io_retry_attempts=int(os.getenv("AGENT_RELAY_IO_RETRY_ATTEMPTS", "5")),
                io_retry_delay_seconds=float(
                    os.getenv("AGENT_RELAY_IO_RETRY_DELAY_SECONDS", "0.05"),
                ),
                request_timeout_seconds=float(
                    os.getenv("AGENT_RELAY_REQUEST_TIMEOUT_SECONDS", "300"),
                ),
                stop_join_seconds=float(os.getenv("AGENT_RELAY_STOP_JOIN_SECONDS", "0.5")),
                cleanup_on_start=_env_bool("AGENT_RELAY_CLEANUP_ON_START", default=True),
                launcher_command=os.getenv("AGENT_RELAY_LAUNCHER_COMMAND", "").strip(),
                process_name=os.getenv("AGENT_RELAY_PROCESS_NAME", "").strip(),
            ),
            workspace=WorkspaceSettings(
                project_root=root,
                root_folder=root_folder,
                sidecar_suffix=os.getenv("AGENT_RELAY_SIDECAR_SUFFIX", ".meta"),
            ),
            prompt=PromptSettings(
                main_prompt_path=Path(
                    os.getenv(
                        "AGENT_RELAY_MAIN_PROMPT_PATH",
                        str(prompts_dir / "SystemPrompt.txt"),
                    ),
                ),
                fixed_rules_path=Path(
                    os.getenv(
                        "AGENT_RELAY_FIXED_RULES_PATH",
                        str(prompts_dir / "FixedRules.txt"),
                    ),
                ),
            ),
            log_level=os.getenv("AGENT_RELAY_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
        )

    def validate_for_broker(self) -> None:
        """Raise configuration error if broker timings or retry bounds are unusable."""

        broker = self.broker
        if broker.poll_interval_seconds <= 0:
            raise ConfigurationError("AGENT_RELAY_POLL_INTERVAL_SECONDS must be > 0.")
        if broker.io_retry_attempts <= 0:
            raise ConfigurationError("AGENT_RELAY_IO_RETRY_ATTEMPTS must be a positive integer.")
        if broker.io_retry_delay_seconds < 0:
            raise ConfigurationError("AGENT_RELAY_IO_RETRY_DELAY_SECONDS must be >= 0.")
        if broker.request_timeout_seconds < 0:
            raise ConfigurationError("AGENT_RELAY_REQUEST_TIMEOUT_SECONDS must be >= 0.")
        if broker.stop_join_seconds < 0:
            raise ConfigurationError("AGENT_RELAY_STOP_JOIN_SECONDS must be >= 0.")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"Invalid boolean value for {name}: {value!r}")
