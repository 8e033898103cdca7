"""Public API for the launch pipeline."""

from __future__ import annotations

from services.launch.builder import build_launch_orchestrator
from services.launch.constants import FATAL_EXIT_CODE, LOCK_FILENAME
from services.launch.guard import LaunchGuard, LockHandle
from services.launch.hooks import HookRunner, discover_hooks
from services.launch.models import (
    HookPhase,
    HookResult,
    HookScript,
    LaunchConfiguration,
    LaunchError,
    LaunchRejected,
    RuntimeMissing,
    SecretsProviderMode,
    SpawnError,
    merge_env_assignments,
)
from services.launch.orchestrator import LaunchOrchestrator
from services.launch.process import ProcessLauncher, compose_arguments, compose_environment

__all__ = [
    "FATAL_EXIT_CODE",
    "LOCK_FILENAME",
    "HookPhase",
    "HookResult",
    "HookRunner",
    "HookScript",
    "LaunchConfiguration",
    "LaunchError",
    "LaunchGuard",
    "LaunchOrchestrator",
    "LaunchRejected",
    "LockHandle",
    "ProcessLauncher",
    "RuntimeMissing",
    "SecretsProviderMode",
    "SpawnError",
    "build_launch_orchestrator",
    "compose_arguments",
    "compose_environment",
    "discover_hooks",
    "merge_env_assignments",
]
