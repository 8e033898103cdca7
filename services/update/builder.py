"""Helpers for constructing the update services."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from app.version import get_app_version
from services.update.constants import LOCAL_RELEASE_ENV, RUNTIME_EXECUTABLE_NAME
from services.update.installer import ArtifactInstaller
from services.update.providers import (
    CustomUrlReleaseProvider,
    GitHubReleaseProvider,
    LocalFolderReleaseProvider,
    ReleaseProvider,
)
from services.update.resolver import VersionResolver
from services.update.self_update import SelfUpdater, find_packaged_executable
from services.update.service import UpdateService


_LOGGER = logging.getLogger(__name__)


def build_runtime_provider(
    repo_owner: str,
    repo_name: str,
    release_asset: str,
    *,
    custom_release_url: str | None = None,
) -> ReleaseProvider:
    """Return the release provider for the managed runtime.

    ``$XLM_UPDATE_LOCAL_DIR`` takes precedence, then a custom release URL,
    then the GitHub repository coordinates.
    """

    local_dir = os.environ.get(LOCAL_RELEASE_ENV)
    if local_dir:
        folder = Path(local_dir)
        if folder.exists():
            _LOGGER.info("Using local update source at %s", folder)
            return LocalFolderReleaseProvider(folder)
        _LOGGER.warning("Configured local update directory does not exist: %s", folder)

    if custom_release_url:
        _LOGGER.info("Using custom runtime release at %s", custom_release_url)
        return CustomUrlReleaseProvider(custom_release_url, release_asset)

    return GitHubReleaseProvider(repo_owner, repo_name, release_asset)


def build_update_service(
    install_directory: Path,
    provider: ReleaseProvider,
    *,
    executable_name: str = RUNTIME_EXECUTABLE_NAME,
) -> UpdateService:
    """Construct an :class:`UpdateService` for ``install_directory``."""

    installer = ArtifactInstaller(install_directory, executable_name=executable_name)
    return UpdateService(
        VersionResolver(provider),
        installer,
        install_directory=install_directory,
    )


def build_self_updater(repo_owner: str, repo_name: str, asset_name: str) -> SelfUpdater:
    """Construct a :class:`SelfUpdater` for the running launcher."""

    return SelfUpdater(
        GitHubReleaseProvider(repo_owner, repo_name, asset_name),
        current_version=get_app_version(),
        executable_path=find_packaged_executable(),
    )


__all__ = [
    "build_runtime_provider",
    "build_self_updater",
    "build_update_service",
]
