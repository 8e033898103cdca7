"""Public API for the update service package."""

from __future__ import annotations

from services.update.builder import build_runtime_provider, build_self_updater, build_update_service
from services.update.constants import (
    INSTALL_RECORD_FILENAME,
    LOCAL_RELEASE_ENV,
    RELEASES_DIRNAME,
    RUNTIME_EXECUTABLE_NAME,
    RUNTIME_LINK_NAME,
    STAGING_DIRNAME,
)
from services.update.install_record import load_install_record, write_install_record
from services.update.installer import ArtifactInstaller
from services.update.models import (
    DownloadFailed,
    ExtractionFailed,
    InstallRecord,
    ReleaseDescriptor,
    Resolution,
    ResolutionKind,
    SelfUpdateResult,
    SelfUpdateStatus,
    SwapFailed,
    UpdateError,
)
from services.update.providers import (
    CustomUrlReleaseProvider,
    GitHubReleaseProvider,
    LocalFolderReleaseProvider,
    ReleaseProvider,
)
from services.update.resolver import VersionResolver
from services.update.self_update import SelfUpdater
from services.update.service import UpdateService

__all__ = [
    "INSTALL_RECORD_FILENAME",
    "LOCAL_RELEASE_ENV",
    "RELEASES_DIRNAME",
    "RUNTIME_EXECUTABLE_NAME",
    "RUNTIME_LINK_NAME",
    "STAGING_DIRNAME",
    "ArtifactInstaller",
    "CustomUrlReleaseProvider",
    "DownloadFailed",
    "ExtractionFailed",
    "GitHubReleaseProvider",
    "InstallRecord",
    "LocalFolderReleaseProvider",
    "ReleaseDescriptor",
    "ReleaseProvider",
    "Resolution",
    "ResolutionKind",
    "SelfUpdateResult",
    "SelfUpdateStatus",
    "SelfUpdater",
    "SwapFailed",
    "UpdateError",
    "UpdateService",
    "VersionResolver",
    "build_runtime_provider",
    "build_self_updater",
    "build_update_service",
    "load_install_record",
    "write_install_record",
]
