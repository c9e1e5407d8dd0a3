"""Project-root-relative path normalization for command handlers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from agent_relay.config import WorkspaceSettings

_REPEATED_SEPARATORS = re.compile(r"/{2,}")


def normalize_path(path: str, *, root_folder: str = "Assets") -> str:
    """Canonicalize a user-supplied path into the ``<root_folder>/...`` form.

    Backslashes become forward slashes, paths not already anchored under
    ``root_folder`` (case-insensitive) are prefixed with it, and repeated or
    trailing separators are collapsed.
    """

    cleaned = path.strip().replace("\\", "/")
    cleaned = _REPEATED_SEPARATORS.sub("/", cleaned).lstrip("/")
    anchor = root_folder.lower()
    lowered = cleaned.lower()
    if lowered != anchor and not lowered.startswith(f"{anchor}/"):
        cleaned = f"{root_folder}/{cleaned}"
    cleaned = _REPEATED_SEPARATORS.sub("/", cleaned)
    return cleaned.rstrip("/") or root_folder


@dataclass(slots=True)
class Workspace:
    """Project tree handlers read and write."""

    project_root: Path
    root_folder: str = "Assets"
    sidecar_suffix: str = ".meta"

    @classmethod
    def from_settings(cls, settings: WorkspaceSettings) -> Workspace:
        return cls(
            project_root=settings.project_root,
            root_folder=settings.root_folder,
            sidecar_suffix=settings.sidecar_suffix,
        )

    def normalize(self, path: str) -> str:
        return normalize_path(path, root_folder=self.root_folder)

    def resolve(self, relative_path: str) -> Path:
        """Map an already normalized relative path onto the filesystem."""

        return self.project_root / relative_path

    def is_sidecar(self, name: str) -> bool:
        return bool(self.sidecar_suffix) and name.lower().endswith(self.sidecar_suffix.lower())
