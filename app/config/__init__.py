"""Launcher defaults loaded from JSON resources."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from importlib import resources
from math import isfinite
from pathlib import Path
from typing import Any, Mapping

_CONFIG_RESOURCE = "launcher.json"
_CONFIG_CACHE: LauncherDefaults | None = None

_DEFAULT_RUNTIME = {
    "repo_owner": "goatcorp",
    "repo_name": "XIVLauncher.Core",
    "release_asset": "XIVLauncher.Core.tar.gz",
    "executable": "XIVLauncher.Core",
}
_DEFAULT_UPDATER = {
    "repo_owner": "Blooym",
    "repo_name": "xlm",
    "release_asset": "xlm-x86_64-unknown-linux-gnu",
}
_DEFAULT_GRACE_DELAY_SECONDS = 1.0
_DEFAULT_INSTALL_DIRNAME = "xlcore"


@dataclass(frozen=True)
class RuntimeDefaults:
    """Where the managed runtime is published and what it is called."""

    repo_owner: str
    repo_name: str
    release_asset: str
    executable: str


@dataclass(frozen=True)
class UpdaterDefaults:
    """Where the launcher's own releases are published."""

    repo_owner: str
    repo_name: str
    release_asset: str


@dataclass(frozen=True)
class LauncherDefaults:
    """Structured default values for the launcher."""

    install_directory: Path
    runtime: RuntimeDefaults
    updater: UpdaterDefaults
    guard_grace_delay_seconds: float


def get_launcher_defaults() -> LauncherDefaults:
    """Return the cached launcher defaults."""

    global _CONFIG_CACHE
    if _CONFIG_CACHE is None:
        _CONFIG_CACHE = load_launcher_defaults()
    return _CONFIG_CACHE


def reset_launcher_defaults_cache() -> None:
    """Reset the cached defaults for subsequent reloads."""

    global _CONFIG_CACHE
    _CONFIG_CACHE = None


def load_launcher_defaults(path: str | Path | None = None) -> LauncherDefaults:
    """Load defaults from ``path`` or the bundled JSON resource."""

    data = _read_config_data(path)
    runtime_section = data.get("runtime") if isinstance(data, Mapping) else None
    updater_section = data.get("updater") if isinstance(data, Mapping) else None
    guard_section = data.get("guard") if isinstance(data, Mapping) else None
    install_directory = data.get("install_directory") if isinstance(data, Mapping) else None
    return LauncherDefaults(
        install_directory=_parse_install_directory(install_directory),
        runtime=RuntimeDefaults(**_parse_string_section(runtime_section, _DEFAULT_RUNTIME)),
        updater=UpdaterDefaults(**_parse_string_section(updater_section, _DEFAULT_UPDATER)),
        guard_grace_delay_seconds=_parse_grace_delay(guard_section),
    )


def default_data_directory() -> Path:
    """Return the per-user data directory (``$XDG_DATA_HOME`` or ``~/.local/share``)."""

    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home and Path(xdg_data_home).is_absolute():
        return Path(xdg_data_home)
    return Path.home() / ".local" / "share"


def _read_config_data(path: str | Path | None) -> Mapping[str, Any]:
    if path is not None:
        return _load_json_from_path(Path(path).expanduser())
    return _load_default_config_data()


def _load_json_from_path(path: Path) -> Mapping[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    return _parse_json(raw)


def _load_default_config_data() -> Mapping[str, Any]:
    try:
        resource = resources.files(__package__).joinpath(_CONFIG_RESOURCE)
        raw = resource.read_text(encoding="utf-8")
    except (FileNotFoundError, OSError):
        return {}
    return _parse_json(raw)


def _parse_json(raw: str) -> Mapping[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, Mapping):
        return parsed
    return {}


def _parse_install_directory(value: Any) -> Path:
    if isinstance(value, str) and value.strip():
        return Path(os.path.expandvars(value.strip())).expanduser()
    return default_data_directory() / _DEFAULT_INSTALL_DIRNAME


def _parse_string_section(section: Any, defaults: Mapping[str, str]) -> dict[str, str]:
    parsed = dict(defaults)
    if not isinstance(section, Mapping):
        return parsed
    for key in defaults:
        value = section.get(key)
        if isinstance(value, str) and value.strip():
            parsed[key] = value.strip()
    return parsed


def _parse_grace_delay(section: Any) -> float:
    if not isinstance(section, Mapping):
        return _DEFAULT_GRACE_DELAY_SECONDS
    value = section.get("grace_delay_seconds")
    if isinstance(value, bool):
        return _DEFAULT_GRACE_DELAY_SECONDS
    if isinstance(value, (int, float)):
        candidate = float(value)
    elif isinstance(value, str):
        try:
            candidate = float(value.strip())
        except ValueError:
            return _DEFAULT_GRACE_DELAY_SECONDS
    else:
        return _DEFAULT_GRACE_DELAY_SECONDS
    if not isfinite(candidate) or candidate < 0:
        return _DEFAULT_GRACE_DELAY_SECONDS
    return candidate


__all__ = [
    "LauncherDefaults",
    "RuntimeDefaults",
    "UpdaterDefaults",
    "default_data_directory",
    "get_launcher_defaults",
    "load_launcher_defaults",
    "reset_launcher_defaults_cache",
]
