"""The update-and-launch pipeline."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping, Protocol

from services.launch.constants import FATAL_EXIT_CODE, RUNTIME_EXIT_CODE_ENV
from services.launch.guard import LaunchGuard
from services.launch.hooks import HookRunner
from services.launch.models import (
    HookPhase,
    LaunchConfiguration,
    LaunchError,
    RuntimeMissing,
)
from services.launch.process import (
    ProcessLauncher,
    compose_arguments,
    compose_environment,
    required_environment,
)
from services.update.models import InstallRecord, SelfUpdateResult, SelfUpdateStatus

_LOGGER = logging.getLogger(__name__)


class RuntimeProvisioner(Protocol):
    def ensure_runtime(self, *, skip_update: bool = False) -> InstallRecord | None:
        ...


class SelfUpdateStep(Protocol):
    def maybe_self_update(self, enabled: bool) -> SelfUpdateResult:
        ...


class LaunchOrchestrator:
    """Run one launch: guard, self-update, runtime update, hooks, spawn.

    :meth:`run` never raises :class:`LaunchError`; fatal conditions are logged
    and reported as exit code ``125``.  Interrupts still propagate after the
    lock has been released.
    """

    def __init__(
        self,
        configuration: LaunchConfiguration,
        *,
        guard: LaunchGuard,
        self_updater: SelfUpdateStep,
        update_service: RuntimeProvisioner,
        hook_runner: HookRunner,
        launcher: ProcessLauncher,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._configuration = configuration
        self._guard = guard
        self._self_updater = self_updater
        self._update_service = update_service
        self._hook_runner = hook_runner
        self._launcher = launcher
        self._environ = environ

    def run(self) -> int:
        install_directory = Path(self._configuration.install_directory)
        try:
            with self._guard.admit(install_directory):
                return self._run_admitted(install_directory)
        except LaunchError as exc:
            _LOGGER.error("Launch aborted: %s", exc)
            return FATAL_EXIT_CODE

    def _run_admitted(self, install_directory: Path) -> int:
        configuration = self._configuration

        result = self._self_updater.maybe_self_update(configuration.self_update_enabled)
        if result.status is SelfUpdateStatus.FAILED:
            _LOGGER.debug("Continuing launch after failed self-update: %s", result.reason)

        record = self._update_service.ensure_runtime(skip_update=configuration.skip_update)
        if record is None:
            raise RuntimeMissing(f"No runtime is installed in {install_directory}")

        executable = Path(record.install_path) / configuration.executable_name
        if not executable.is_file():
            raise RuntimeMissing(f"Runtime executable {executable} does not exist")

        inherited = dict(os.environ if self._environ is None else self._environ)
        env = compose_environment(
            inherited,
            required_environment(
                inherited,
                runtime_directory=Path(record.install_path),
                secrets_provider_mode=configuration.secrets_provider_mode,
            ),
            configuration.extra_env_vars,
        )

        self._hook_runner.run_hooks(install_directory, HookPhase.PRELAUNCH, env)
        _LOGGER.info("Launching runtime %s", record.installed_version)
        exit_code = self._launcher.launch(
            executable, compose_arguments((), configuration.extra_launch_args), env
        )

        post_env = dict(env)
        post_env[RUNTIME_EXIT_CODE_ENV] = str(exit_code)
        self._hook_runner.run_hooks(install_directory, HookPhase.POSTLAUNCH, post_env)
        return exit_code


__all__ = ["LaunchOrchestrator", "RuntimeProvisioner", "SelfUpdateStep"]
