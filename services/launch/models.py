"""Data models used by the launch pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping


class SecretsProviderMode(str, enum.Enum):
    """Credential store the runtime should use."""

    SYSTEM = "system"
    FALLBACK_FILE = "fallback_file"


@dataclass(frozen=True)
class LaunchConfiguration:
    """Options for a single launch invocation."""

    install_directory: Path
    repo_owner: str
    repo_name: str
    release_asset: str
    executable_name: str
    extra_launch_args: tuple[str, ...] = ()
    extra_env_vars: Mapping[str, str] = field(default_factory=dict)
    secrets_provider_mode: SecretsProviderMode = SecretsProviderMode.SYSTEM
    self_update_enabled: bool = True
    skip_update: bool = False
    custom_release_url: str | None = None
    updater_repo_owner: str = "Blooym"
    updater_repo_name: str = "xlm"
    updater_asset: str = "xlm-x86_64-unknown-linux-gnu"


def merge_env_assignments(assignments: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Collapse ``(name, value)`` pairs into a mapping where later pairs win."""

    merged: dict[str, str] = {}
    for name, value in assignments:
        merged[name] = value
    return merged


class HookPhase(str, enum.Enum):
    PRELAUNCH = "prelaunch"
    POSTLAUNCH = "postlaunch"


@dataclass(frozen=True)
class HookScript:
    """An executable discovered in one of the hook directories."""

    path: Path
    sort_key: str


@dataclass(frozen=True)
class HookResult:
    hook: HookScript
    exit_status: int

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0


class LaunchError(RuntimeError):
    """Raised when the launch cannot proceed at all."""


class LaunchRejected(LaunchError):
    """Another launch already holds the install directory."""


class RuntimeMissing(LaunchError):
    """No usable runtime install exists and none could be installed."""


class SpawnError(LaunchError):
    """The runtime executable could not be started."""
