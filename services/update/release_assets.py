"""Utilities for acquiring and validating release assets."""

from __future__ import annotations

import logging
from http.client import HTTPException
from pathlib import Path
from urllib.error import URLError
from urllib.request import urlopen

from services.update.constants import DOWNLOAD_CHUNK_SIZE, DOWNLOAD_TIMEOUT_SECONDS
from services.update.hashing import calculate_sha256
from services.update.models import DownloadFailed, ReleaseDescriptor
from services.update.providers import build_request


_LOGGER = logging.getLogger(__name__)

__all__ = ["download_release_asset", "verify_release_asset"]


def download_release_asset(
    release: ReleaseDescriptor,
    target_dir: Path,
    *,
    timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
) -> Path:
    """Download the asset for ``release`` into ``target_dir`` and verify it."""

    target_path = target_dir / Path(release.asset_name).name
    _LOGGER.info("Downloading release %s from %s", release.tag, release.asset_url)
    expected_length: int | None = None
    received = 0
    try:
        with urlopen(build_request(release.asset_url), timeout=timeout) as response, target_path.open(
            "wb"
        ) as destination:  # nosec - release host over HTTPS
            expected_length = _content_length(response)
            for chunk in iter(lambda: response.read(DOWNLOAD_CHUNK_SIZE), b""):
                destination.write(chunk)
                received += len(chunk)
    except (OSError, URLError, HTTPException) as exc:
        raise DownloadFailed(f"Failed to download {release.asset_url}: {exc}") from exc

    if expected_length is not None and received != expected_length:
        raise DownloadFailed(
            f"Download of {release.asset_name} was truncated: "
            f"received {received} of {expected_length} bytes"
        )
    _LOGGER.debug("Downloaded %s bytes to %s", received, target_path)
    verify_release_asset(release, target_path)
    return target_path


def verify_release_asset(release: ReleaseDescriptor, path: Path) -> None:
    """Check ``path`` against the size and digest published with ``release``."""

    try:
        actual_size = path.stat().st_size
    except OSError as exc:
        raise DownloadFailed(f"Unable to inspect downloaded asset {path}: {exc}") from exc
    if release.size is not None and actual_size != release.size:
        raise DownloadFailed(
            f"Asset size mismatch for {release.asset_name}: "
            f"expected {release.size} bytes but received {actual_size}"
        )
    if release.digest is None:
        _LOGGER.warning(
            "Release %s does not publish a SHA-256 digest; only the size was verified",
            release.tag,
        )
        return
    try:
        actual_digest = calculate_sha256(path)
    except OSError as exc:
        raise DownloadFailed(f"Unable to hash downloaded asset {path}: {exc}") from exc
    if actual_digest.lower() != release.digest.lower():
        raise DownloadFailed(
            f"Asset hash mismatch: expected {release.digest} but received {actual_digest}"
        )
    _LOGGER.info("Verified asset %s for release %s", release.asset_name, release.tag)


def _content_length(response: object) -> int | None:
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    raw = headers.get("Content-Length")
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    return value if value >= 0 else None
