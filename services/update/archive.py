"""Archive handling helpers for the update service."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path

from services.update import constants
from services.update.models import ExtractionFailed


_LOGGER = logging.getLogger(__name__)


def extract_archive(archive_path: Path, target_dir: Path) -> Path:
    """Unpack ``archive_path`` into the empty directory ``target_dir``.

    Returns the directory holding the release payload: the single top-level
    folder when the archive wraps everything in one, otherwise ``target_dir``.
    """

    _LOGGER.info("Extracting release archive %s", archive_path)
    target_dir.mkdir(parents=True, exist_ok=True)
    try:
        if _is_zip(archive_path):
            with zipfile.ZipFile(archive_path) as archive:
                extract_zip_safely(archive, target_dir)
        else:
            with tarfile.open(archive_path) as archive:
                extract_tar_safely(archive, target_dir, archive_path.stat().st_size)
    except (OSError, tarfile.TarError, zipfile.BadZipFile, EOFError) as exc:
        raise ExtractionFailed(f"Failed to extract release archive: {exc}") from exc
    _LOGGER.debug("Archive extracted to %s", target_dir)
    return resolve_package_root(target_dir)


def resolve_package_root(directory: Path) -> Path:
    candidates = [path for path in directory.iterdir() if not path.name.startswith("__MACOSX")]
    if not candidates:
        raise ExtractionFailed("Release archive was empty")
    if len(candidates) == 1 and candidates[0].is_dir() and not candidates[0].is_symlink():
        return candidates[0]
    return directory


def extract_tar_safely(archive: tarfile.TarFile, target_dir: Path, archive_size: int) -> None:
    root = target_dir.resolve()
    limits = _ExtractionLimits(compressed_size=archive_size)
    for member in archive:
        if not member.name or member.name in {".", "./"}:
            continue
        limits.count_entry(member.name)
        destination = _safe_destination(root, member.name)
        if member.isdir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        destination.parent.mkdir(parents=True, exist_ok=True)
        if member.issym():
            _check_link_target(root, destination.parent / member.linkname, member.name)
            os.symlink(member.linkname, destination)
            continue
        if member.islnk():
            source = _safe_destination(root, member.linkname)
            if not source.is_file():
                raise ExtractionFailed(
                    f"Release archive hard link {member.name} points at a missing file"
                )
            shutil.copy2(source, destination)
            continue
        if not member.isreg():
            raise ExtractionFailed(f"Release archive contained unsupported entry {member.name}")
        limits.count_file(member.name, member.size)
        source_file = archive.extractfile(member)
        if source_file is None:
            raise ExtractionFailed(f"Release archive entry {member.name} could not be read")
        with source_file, destination.open("wb") as target:
            shutil.copyfileobj(source_file, target)
        os.chmod(destination, (member.mode & 0o777) | stat.S_IRUSR | stat.S_IWUSR)
        _LOGGER.debug("Extracted archive member %s to %s", member.name, destination)
    limits.check_ratio()
    limits.log_summary()


def extract_zip_safely(archive: zipfile.ZipFile, target_dir: Path) -> None:
    root = target_dir.resolve()
    limits = _ExtractionLimits()
    for member in archive.infolist():
        name = member.filename
        if not name:
            continue
        limits.count_entry(name)
        destination = _safe_destination(root, name)
        if member.is_dir():
            destination.mkdir(parents=True, exist_ok=True)
            continue
        limits.count_file(name, member.file_size)
        if member.compress_size == 0 and member.file_size > 0:
            _LOGGER.error("Archive member %s reported zero compression size", name)
            raise ExtractionFailed("Release archive contained a suspiciously compressed file")
        if (
            member.compress_size > 0
            and member.file_size > member.compress_size * constants.MAX_COMPRESSION_RATIO
        ):
            _LOGGER.error(
                "Archive member %s exceeded compression ratio limit (%s > %s)",
                name,
                member.file_size,
                member.compress_size * constants.MAX_COMPRESSION_RATIO,
            )
            raise ExtractionFailed("Release archive exceeded safe compression ratio")
        destination.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as source, destination.open("wb") as target:
            shutil.copyfileobj(source, target)
        mode = (member.external_attr >> 16) & 0o777
        if mode:
            os.chmod(destination, mode | stat.S_IRUSR | stat.S_IWUSR)
        _LOGGER.debug("Extracted archive member %s to %s", name, destination)
    limits.log_summary()


class _ExtractionLimits:
    """Running totals checked against the configured extraction limits."""

    def __init__(self, compressed_size: int | None = None) -> None:
        self.entries = 0
        self.total_bytes = 0
        self._compressed_size = compressed_size

    def count_entry(self, name: str) -> None:
        self.entries += 1
        if self.entries > constants.MAX_ARCHIVE_ENTRIES:
            _LOGGER.error(
                "Archive entry count %s exceeded limit %s at %s",
                self.entries,
                constants.MAX_ARCHIVE_ENTRIES,
                name,
            )
            raise ExtractionFailed("Release archive contained too many entries")

    def count_file(self, name: str, size: int) -> None:
        if size > constants.MAX_ARCHIVE_FILE_SIZE:
            _LOGGER.error(
                "Archive member %s exceeded file size limit (%s > %s)",
                name,
                size,
                constants.MAX_ARCHIVE_FILE_SIZE,
            )
            raise ExtractionFailed("Release archive contained an oversized file")
        self.total_bytes += size
        if self.total_bytes > constants.MAX_ARCHIVE_TOTAL_BYTES:
            _LOGGER.error(
                "Archive expanded to %s bytes which exceeds limit %s",
                self.total_bytes,
                constants.MAX_ARCHIVE_TOTAL_BYTES,
            )
            raise ExtractionFailed("Release archive expanded beyond safe limits")

    def check_ratio(self) -> None:
        if not self._compressed_size:
            return
        if self.total_bytes > self._compressed_size * constants.MAX_COMPRESSION_RATIO:
            _LOGGER.error(
                "Archive expanded to %s bytes from %s compressed bytes",
                self.total_bytes,
                self._compressed_size,
            )
            raise ExtractionFailed("Release archive exceeded safe compression ratio")

    def log_summary(self) -> None:
        _LOGGER.info(
            "Extracted %s entries totalling %s bytes", self.entries, self.total_bytes
        )


def _safe_destination(root: Path, name: str) -> Path:
    path = Path(name)
    if path.is_absolute():
        raise ExtractionFailed("Release archive contained an absolute path entry")
    destination = (root / path).resolve()
    try:
        destination.relative_to(root)
    except ValueError:
        raise ExtractionFailed("Release archive contained an unsafe relative path")
    return destination


def _check_link_target(root: Path, target: Path, name: str) -> None:
    try:
        target.resolve().relative_to(root)
    except ValueError:
        raise ExtractionFailed(f"Release archive link {name} points outside the archive")


def _is_zip(archive_path: Path) -> bool:
    if archive_path.name.lower().endswith(constants.ARCHIVE_ZIP_EXTENSIONS):
        return True
    try:
        return zipfile.is_zipfile(archive_path)
    except OSError:
        return False


__all__ = [
    "extract_archive",
    "extract_tar_safely",
    "extract_zip_safely",
    "resolve_package_root",
]
