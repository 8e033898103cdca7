"""Discovery and execution of user pre/post-launch hook scripts."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Mapping, Protocol

from services.launch.constants import (
    HOOK_SPAWN_FAILURE_STATUS,
    POSTLAUNCH_DIRNAME,
    PRELAUNCH_DIRNAME,
)
from services.launch.models import HookPhase, HookResult, HookScript

_LOGGER = logging.getLogger(__name__)

_PHASE_DIRECTORIES = {
    HookPhase.PRELAUNCH: PRELAUNCH_DIRNAME,
    HookPhase.POSTLAUNCH: POSTLAUNCH_DIRNAME,
}


class Executable(Protocol):
    """Something that runs to completion and reports an exit status."""

    def run(self, env: Mapping[str, str]) -> int:
        ...


class ScriptExecutable:
    """Runs a hook script as a child process in its own directory."""

    def __init__(self, hook: HookScript) -> None:
        self._hook = hook

    def run(self, env: Mapping[str, str]) -> int:
        path = self._hook.path
        try:
            completed = subprocess.run(
                [str(path)],
                env=dict(env),
                cwd=str(path.parent),
                check=False,
            )
        except OSError as exc:
            _LOGGER.warning("Unable to start hook %s: %s", path, exc)
            return HOOK_SPAWN_FAILURE_STATUS
        return completed.returncode


def hook_directory(install_directory: Path, phase: HookPhase) -> Path:
    return Path(install_directory) / _PHASE_DIRECTORIES[phase]


def discover_hooks(directory: Path) -> list[HookScript]:
    """Return executable regular files in ``directory`` ordered by file name."""

    try:
        entries = list(Path(directory).iterdir())
    except FileNotFoundError:
        return []
    except NotADirectoryError:
        _LOGGER.warning("Hook path %s is not a directory", directory)
        return []
    except OSError as exc:
        _LOGGER.warning("Unable to list hooks in %s: %s", directory, exc)
        return []

    hooks: list[HookScript] = []
    for entry in entries:
        if not entry.is_file():
            continue
        if not os.access(entry, os.X_OK):
            _LOGGER.info("Skipping non-executable hook %s", entry)
            continue
        hooks.append(HookScript(path=entry, sort_key=entry.name))
    hooks.sort(key=lambda hook: hook.sort_key)
    return hooks


class HookRunner:
    """Runs every hook of a phase in order; failures never stop the sequence."""

    def __init__(
        self, executable_factory: Callable[[HookScript], Executable] = ScriptExecutable
    ) -> None:
        self._executable_factory = executable_factory

    def run_hooks(
        self, install_directory: Path, phase: HookPhase, env: Mapping[str, str]
    ) -> list[HookResult]:
        hooks = discover_hooks(hook_directory(install_directory, phase))
        if not hooks:
            _LOGGER.debug("No %s hooks found in %s", phase.value, install_directory)
            return []

        results: list[HookResult] = []
        for hook in hooks:
            _LOGGER.info("Running %s hook %s", phase.value, hook.path.name)
            status = self._executable_factory(hook).run(env)
            result = HookResult(hook=hook, exit_status=status)
            if not result.succeeded:
                _LOGGER.warning(
                    "%s hook %s exited with status %s",
                    phase.value.capitalize(),
                    hook.path.name,
                    status,
                )
            results.append(result)
        return results


__all__ = [
    "Executable",
    "HookRunner",
    "ScriptExecutable",
    "discover_hooks",
    "hook_directory",
]
