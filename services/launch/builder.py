"""Construct a launch pipeline from a :class:`LaunchConfiguration`."""

from __future__ import annotations

from services.launch.constants import DEFAULT_GRACE_DELAY_SECONDS
from services.launch.guard import LaunchGuard
from services.launch.hooks import HookRunner
from services.launch.models import LaunchConfiguration
from services.launch.orchestrator import LaunchOrchestrator
from services.launch.process import ProcessLauncher
from services.update.builder import (
    build_runtime_provider,
    build_self_updater,
    build_update_service,
)


def build_launch_orchestrator(
    configuration: LaunchConfiguration,
    *,
    grace_delay: float = DEFAULT_GRACE_DELAY_SECONDS,
) -> LaunchOrchestrator:
    provider = build_runtime_provider(
        configuration.repo_owner,
        configuration.repo_name,
        configuration.release_asset,
        custom_release_url=configuration.custom_release_url,
    )
    return LaunchOrchestrator(
        configuration,
        guard=LaunchGuard(grace_delay=grace_delay),
        self_updater=build_self_updater(
            configuration.updater_repo_owner,
            configuration.updater_repo_name,
            configuration.updater_asset,
        ),
        update_service=build_update_service(
            configuration.install_directory,
            provider,
            executable_name=configuration.executable_name,
        ),
        hook_runner=HookRunner(),
        launcher=ProcessLauncher(),
    )


__all__ = ["build_launch_orchestrator"]
