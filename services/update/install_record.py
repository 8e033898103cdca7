"""Persistence of the installed runtime version marker."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from services.update.constants import INSTALL_RECORD_FILENAME
from services.update.models import InstallRecord

_LOGGER = logging.getLogger(__name__)


def get_install_record_path(install_directory: Path) -> Path:
    return install_directory / INSTALL_RECORD_FILENAME


def load_install_record(install_directory: Path) -> InstallRecord | None:
    """Return the recorded install for ``install_directory`` if it is usable.

    Older releases wrote the bare tag to ``versiondata`` and unpacked the
    runtime straight into the install directory; that form is still read.
    """

    record_path = get_install_record_path(install_directory)
    try:
        raw = record_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        _LOGGER.info("No install record found at %s", record_path)
        return None
    except OSError as exc:
        _LOGGER.error("Unable to read install record %s: %s", record_path, exc)
        return None

    record = _parse_record(raw, install_directory)
    if record is None:
        _LOGGER.warning("Ignoring malformed install record at %s", record_path)
        return None
    if not record.install_path.is_dir():
        _LOGGER.warning(
            "Install record for %s points at missing directory %s",
            record.installed_version,
            record.install_path,
        )
        return None
    _LOGGER.debug("Loaded install record %s", record)
    return record


def write_install_record(install_directory: Path, record: InstallRecord) -> None:
    """Atomically replace the install record with ``record``."""

    record_path = get_install_record_path(install_directory)
    try:
        stored_path = Path(record.install_path).relative_to(install_directory)
    except ValueError:
        stored_path = Path(record.install_path)
    payload = json.dumps(
        {
            "installed_version": record.installed_version,
            "install_path": str(stored_path),
        },
        indent=2,
    )
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{INSTALL_RECORD_FILENAME}.", dir=str(install_directory)
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, record_path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise
    _LOGGER.info("Wrote install record with version %s", record.installed_version)


def _parse_record(raw: str, install_directory: Path) -> InstallRecord | None:
    text = raw.strip()
    if not text:
        return None
    if not text.startswith("{"):
        return InstallRecord(installed_version=text, install_path=install_directory)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    version = data.get("installed_version")
    path = data.get("install_path")
    if not isinstance(version, str) or not version.strip():
        return None
    if not isinstance(path, str) or not path.strip():
        return None
    install_path = Path(path)
    if not install_path.is_absolute():
        install_path = install_directory / install_path
    return InstallRecord(installed_version=version.strip(), install_path=install_path)


__all__ = ["get_install_record_path", "load_install_record", "write_install_record"]
