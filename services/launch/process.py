"""Environment composition and process spawning for the managed runtime."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Mapping, Sequence

from services.launch.constants import (
    COMPAT_TOOL_ENV,
    LD_PRELOAD_ENV,
    PRELOAD_ENV,
    SECRET_PROVIDER_ENV,
    SECRET_PROVIDER_FILE,
)
from services.launch.models import SecretsProviderMode, SpawnError

_LOGGER = logging.getLogger(__name__)

_TERMINATE_TIMEOUT_SECONDS = 5.0


def compose_arguments(required: Iterable[str], extra: Iterable[str]) -> list[str]:
    """Return ``required`` followed by ``extra``, both passed through verbatim."""

    return [*required, *extra]


def required_environment(
    inherited: Mapping[str, str],
    *,
    runtime_directory: Path,
    secrets_provider_mode: SecretsProviderMode,
) -> dict[str, str | None]:
    """Variables the runtime needs when started as a compatibility tool.

    A ``None`` value removes the variable from the composed environment.
    """

    required: dict[str, str | None] = {
        PRELOAD_ENV: inherited.get(LD_PRELOAD_ENV, ""),
        COMPAT_TOOL_ENV: "1",
        LD_PRELOAD_ENV: None,
    }
    if secrets_provider_mode is SecretsProviderMode.FALLBACK_FILE:
        required[SECRET_PROVIDER_ENV] = SECRET_PROVIDER_FILE

    runtime_path = str(runtime_directory)
    current_path = inherited.get("PATH", "")
    entries = current_path.split(os.pathsep) if current_path else []
    if runtime_path not in entries:
        entries.append(runtime_path)
    required["PATH"] = os.pathsep.join(entries)
    return required


def compose_environment(
    inherited: Mapping[str, str],
    required: Mapping[str, str | None],
    extra: Mapping[str, str],
) -> dict[str, str]:
    """Overlay ``required`` then ``extra`` on ``inherited``; ``extra`` always wins."""

    env = dict(inherited)
    for layer in (required, extra):
        for name, value in layer.items():
            if value is None:
                env.pop(name, None)
            else:
                env[name] = value
    return env


class ProcessLauncher:
    """Spawns the runtime and waits for it to exit."""

    def __init__(self, popen: Callable[..., subprocess.Popen] = subprocess.Popen) -> None:
        self._popen = popen

    def launch(self, executable: Path, args: Sequence[str], env: Mapping[str, str]) -> int:
        command = [str(executable), *args]
        _LOGGER.info("Starting %s", executable)
        _LOGGER.debug("Runtime arguments: %s", list(args))
        try:
            process = self._popen(command, env=dict(env), cwd=str(Path(executable).parent))
        except OSError as exc:
            raise SpawnError(f"Unable to start {executable}: {exc}") from exc

        try:
            return_code = process.wait()
        except BaseException:
            _stop_child(process)
            raise

        _LOGGER.info("%s exited with code %s", Path(executable).name, return_code)
        return return_code


def _stop_child(process: subprocess.Popen) -> None:
    if process.poll() is not None:
        return
    _LOGGER.info("Terminating runtime process %s", process.pid)
    process.terminate()
    try:
        process.wait(timeout=_TERMINATE_TIMEOUT_SECONDS)
    except subprocess.TimeoutExpired:
        _LOGGER.warning("Runtime process %s did not exit; killing it", process.pid)
        process.kill()
        process.wait()


__all__ = [
    "ProcessLauncher",
    "compose_arguments",
    "compose_environment",
    "required_environment",
]
