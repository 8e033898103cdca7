"""Decide whether the installed runtime matches the latest release."""

from __future__ import annotations

import logging

from services.update.models import InstallRecord, Resolution
from services.update.providers import ReleaseProvider

_LOGGER = logging.getLogger(__name__)


class VersionResolver:
    """Compare the install record against the provider's latest release.

    Tags are compared for exact string equality; any difference, including
    an older published tag, counts as an update.
    """

    def __init__(self, provider: ReleaseProvider) -> None:
        self._provider = provider

    def resolve(self, installed: InstallRecord | None) -> Resolution:
        installed_version = installed.installed_version if installed is not None else None
        release = self._provider.fetch_latest()
        if release is None:
            _LOGGER.warning(
                "Unable to determine the latest runtime release; keeping %s",
                installed_version or "no installed version",
            )
            return Resolution.unknown(installed_version)

        if installed_version is None:
            _LOGGER.info("Runtime is not installed; latest release is %s", release.tag)
            return Resolution.update_available(release, None)

        if installed_version == release.tag:
            _LOGGER.info("Runtime %s is up to date", installed_version)
            return Resolution.up_to_date(installed_version)

        _LOGGER.info("Runtime update available: %s -> %s", installed_version, release.tag)
        return Resolution.update_available(release, installed_version)


__all__ = ["VersionResolver"]
