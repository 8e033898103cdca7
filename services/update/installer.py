"""Download, stage and atomically swap in new runtime releases.

The install directory is laid out as::

    versiondata        install record (see ``install_record``)
    runtime -> releases/<tag>-<token>
    releases/          complete extracted trees, live plus one previous
    .staging/          scratch space for the update in progress

Nothing outside ``.staging`` is touched until the extracted tree is complete.
The live tree is then replaced by a single ``os.replace`` of the ``runtime``
symlink, and only after that is the install record rewritten.  The record
names the concrete release tree, so a record left behind by an interrupted
update still describes the tree it points at, which is kept as the previous
generation.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Callable

from services.update.archive import extract_archive
from services.update.constants import (
    RELEASES_DIRNAME,
    RUNTIME_EXECUTABLE_NAME,
    RUNTIME_LINK_NAME,
    STAGING_DIRNAME,
)
from services.update.install_record import write_install_record
from services.update.models import (
    DownloadFailed,
    ExtractionFailed,
    InstallRecord,
    ReleaseDescriptor,
    SwapFailed,
)
from services.update.release_assets import download_release_asset


_LOGGER = logging.getLogger(__name__)

_UNSAFE_TAG_CHARACTERS = re.compile(r"[^A-Za-z0-9._-]+")

Downloader = Callable[[ReleaseDescriptor, Path], Path]


class ArtifactInstaller:
    """Install runtime releases into ``install_directory``."""

    def __init__(
        self,
        install_directory: Path,
        *,
        executable_name: str = RUNTIME_EXECUTABLE_NAME,
        downloader: Downloader = download_release_asset,
    ) -> None:
        self._install_directory = Path(install_directory)
        self._executable_name = executable_name
        self._downloader = downloader

    @property
    def runtime_link(self) -> Path:
        return self._install_directory / RUNTIME_LINK_NAME

    @property
    def releases_directory(self) -> Path:
        return self._install_directory / RELEASES_DIRNAME

    def install(self, release: ReleaseDescriptor) -> InstallRecord:
        """Install ``release`` and return the new :class:`InstallRecord`.

        Raises :class:`~services.update.models.UpdateError` subclasses; when
        raised before the swap, the install directory is left as it was.
        """

        _LOGGER.info("Installing runtime release %s", release.tag)
        staging_root = self._install_directory / STAGING_DIRNAME
        created_staging = False
        try:
            self._install_directory.mkdir(parents=True, exist_ok=True)
            created_staging = not staging_root.exists()
            staging_root.mkdir(exist_ok=True)
            created_releases = not self.releases_directory.exists()
            work_dir = Path(tempfile.mkdtemp(prefix="update-", dir=str(staging_root)))
        except OSError as exc:
            if created_staging:
                _remove_if_empty(staging_root)
            raise DownloadFailed(f"Unable to prepare staging area {staging_root}: {exc}") from exc
        try:
            asset_path = self._downloader(release, work_dir)
            package_root = extract_archive(asset_path, work_dir / "unpacked")
            self._check_payload(package_root, release)
            previous = self._current_release_name()
            release_dir: Path | None = None
            try:
                release_dir = self._publish(package_root, release)
                self._swap(release_dir)
            except SwapFailed:
                if release_dir is not None:
                    shutil.rmtree(release_dir, ignore_errors=True)
                if created_releases:
                    _remove_if_empty(self.releases_directory)
                raise
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
            if created_staging:
                _remove_if_empty(staging_root)

        record = InstallRecord(installed_version=release.tag, install_path=release_dir)
        try:
            write_install_record(self._install_directory, record)
        except OSError as exc:
            raise SwapFailed(
                f"Release {release.tag} was swapped in but the install record "
                f"could not be written: {exc}"
            ) from exc
        self._prune_releases(keep={release_dir.name, previous})
        _LOGGER.info("Runtime release %s installed at %s", release.tag, release_dir)
        return record

    def _check_payload(self, package_root: Path, release: ReleaseDescriptor) -> None:
        executable = package_root / self._executable_name
        if not executable.is_file():
            raise ExtractionFailed(
                f"Release {release.tag} does not contain {self._executable_name}"
            )

    def _publish(self, package_root: Path, release: ReleaseDescriptor) -> Path:
        releases = self.releases_directory
        safe_tag = _UNSAFE_TAG_CHARACTERS.sub("_", release.tag).strip("._") or "release"
        release_dir = releases / f"{safe_tag}-{uuid.uuid4().hex[:8]}"
        try:
            releases.mkdir(exist_ok=True)
            os.rename(package_root, release_dir)
        except OSError as exc:
            raise SwapFailed(f"Failed to stage release {release.tag}: {exc}") from exc
        _LOGGER.debug("Staged release %s at %s", release.tag, release_dir)
        return release_dir

    def _swap(self, release_dir: Path) -> None:
        link = self.runtime_link
        temp_link = self._install_directory / f".{RUNTIME_LINK_NAME}.{uuid.uuid4().hex[:8]}"
        target = os.path.join(RELEASES_DIRNAME, release_dir.name)
        try:
            os.symlink(target, temp_link, target_is_directory=True)
            os.replace(temp_link, link)
        except OSError as exc:
            temp_link.unlink(missing_ok=True)
            raise SwapFailed(f"Failed to swap in {release_dir.name}: {exc}") from exc
        _LOGGER.info("Swapped live runtime to %s", release_dir.name)

    def _current_release_name(self) -> str | None:
        link = self.runtime_link
        if not link.is_symlink():
            return None
        return Path(os.readlink(link)).name

    def _prune_releases(self, keep: set[str | None]) -> None:
        """Remove every release tree except the live one and its predecessor."""

        retained = {name for name in keep if name}
        try:
            for entry in sorted(self.releases_directory.iterdir()):
                if entry.name in retained:
                    continue
                _LOGGER.debug("Removing old runtime release %s", entry)
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry, ignore_errors=True)
                else:
                    entry.unlink(missing_ok=True)
        except OSError as exc:
            _LOGGER.warning("Unable to prune old runtime releases: %s", exc)


def _remove_if_empty(directory: Path) -> None:
    try:
        directory.rmdir()
    except FileNotFoundError:
        return
    except OSError:
        _LOGGER.debug("Leaving non-empty directory %s in place", directory)


__all__ = ["ArtifactInstaller"]
