"""Service keeping the managed runtime installed and current."""

from __future__ import annotations

import logging
from pathlib import Path

from services.update.install_record import load_install_record
from services.update.installer import ArtifactInstaller
from services.update.models import InstallRecord, ResolutionKind, UpdateError
from services.update.resolver import VersionResolver


_LOGGER = logging.getLogger(__name__)


class UpdateService:
    """Coordinate version resolution and installation of the runtime."""

    def __init__(
        self,
        resolver: VersionResolver,
        installer: ArtifactInstaller,
        *,
        install_directory: Path,
    ) -> None:
        self._resolver = resolver
        self._installer = installer
        self._install_directory = Path(install_directory)

    def ensure_runtime(self, *, skip_update: bool = False) -> InstallRecord | None:
        """Return a usable install record, updating the runtime when possible.

        Failures only matter when nothing is installed yet; in that case
        ``None`` is returned.  Otherwise the previous install is kept.
        """

        installed = load_install_record(self._install_directory)
        if installed is not None and skip_update:
            _LOGGER.info("Skip update enabled, not checking for runtime updates")
            return installed

        resolution = self._resolver.resolve(installed)
        if resolution.kind is ResolutionKind.UP_TO_DATE:
            return installed
        if resolution.kind is ResolutionKind.UNKNOWN:
            if installed is None:
                _LOGGER.error("Runtime is not installed and no release could be found")
            return installed

        release = resolution.release
        assert release is not None
        try:
            record = self._installer.install(release)
        except UpdateError as exc:
            if installed is None:
                _LOGGER.error("Failed to install runtime %s: %s", release.tag, exc)
                return None
            _LOGGER.warning(
                "Failed to update runtime to %s, continuing with %s: %s",
                release.tag,
                installed.installed_version,
                exc,
            )
            return installed

        if installed is None:
            _LOGGER.info("Successfully installed runtime %s", record.installed_version)
        else:
            _LOGGER.info("Successfully updated runtime to %s", record.installed_version)
        return record


__all__ = ["UpdateService"]
