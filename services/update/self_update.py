"""Best-effort replacement of the launcher's own executable."""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tempfile
from http.client import HTTPException
from pathlib import Path
from typing import Callable

from services.update.models import ReleaseDescriptor, SelfUpdateResult, UpdateError
from services.update.providers import ReleaseProvider
from services.update.release_assets import download_release_asset
from services.update.versioning import is_version_newer, normalise_tag

_LOGGER = logging.getLogger(__name__)

_EXECUTABLE_MODE = 0o755


def find_packaged_executable() -> Path | None:
    """Return the running executable when launched from a frozen build."""

    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()
    return None


class SelfUpdater:
    """Replace the running executable on disk with a newer release.

    The process keeps running the code it was started with; the new binary
    is picked up on the next invocation.
    """

    def __init__(
        self,
        provider: ReleaseProvider,
        *,
        current_version: str,
        executable_path: Path | None,
        downloader: Callable[[ReleaseDescriptor, Path], Path] = download_release_asset,
    ) -> None:
        self._provider = provider
        self._current_version = current_version
        self._executable_path = executable_path
        self._downloader = downloader

    def maybe_self_update(self, enabled: bool) -> SelfUpdateResult:
        if not enabled:
            _LOGGER.debug("Self-updater disabled")
            return SelfUpdateResult.skipped("disabled")
        if self._executable_path is None:
            _LOGGER.debug("Not running from a packaged executable; skipping self-update")
            return SelfUpdateResult.skipped("not a packaged executable")

        try:
            release = self._provider.fetch_latest()
            if release is None:
                _LOGGER.warning("Launcher failed to auto-update: no release information")
                return SelfUpdateResult.failed("release information unavailable")
            if not is_version_newer(self._current_version, release.tag):
                _LOGGER.debug("Launcher %s is up to date", self._current_version)
                return SelfUpdateResult.skipped("up to date")
            self._replace_executable(release, self._executable_path)
        except (UpdateError, OSError, HTTPException) as exc:
            _LOGGER.warning("Launcher failed to auto-update: %s", exc)
            return SelfUpdateResult.failed(str(exc))

        version = normalise_tag(release.tag)
        _LOGGER.info("Launcher has been automatically updated to version %s", version)
        return SelfUpdateResult.updated(version)

    def _replace_executable(self, release: ReleaseDescriptor, executable: Path) -> None:
        work_dir = Path(tempfile.mkdtemp(prefix=".xlm-update-", dir=str(executable.parent)))
        try:
            downloaded = self._downloader(release, work_dir)
            os.chmod(downloaded, _EXECUTABLE_MODE)
            os.replace(downloaded, executable)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
        _LOGGER.debug("Replaced %s with release %s", executable, release.tag)


__all__ = ["SelfUpdater", "find_packaged_executable"]
