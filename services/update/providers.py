"""Release provider implementations."""

from __future__ import annotations

import datetime
import json
import logging
from http.client import HTTPException
from pathlib import Path
from typing import Iterable, Protocol
from urllib.error import URLError
from urllib.parse import urljoin
from urllib.request import Request, urlopen

from services.update.constants import (
    CUSTOM_RELEASE_VERSION_PATH,
    GITHUB_API_ROOT,
    HASH_ASSET_SUFFIX,
    REQUEST_TIMEOUT_SECONDS,
)
from services.update.hashing import normalise_sha256, parse_hash_text
from services.update.models import DownloadFailed, ReleaseDescriptor


_LOGGER = logging.getLogger(__name__)

_USER_AGENT = "xlm-launcher"


class ReleaseProvider(Protocol):
    """Protocol describing release metadata providers."""

    def fetch_latest(self) -> ReleaseDescriptor | None:
        """Return the newest published release or ``None`` when unavailable."""


def build_request(url: str, *, accept: str | None = None) -> Request:
    headers = {"User-Agent": _USER_AGENT}
    if accept:
        headers["Accept"] = accept
    return Request(url, headers=headers)


class GitHubReleaseProvider:
    """Fetch the latest release of ``owner/repo`` from the GitHub Releases API."""

    def __init__(
        self,
        owner: str,
        repo: str,
        asset_name: str,
        *,
        api_root: str = GITHUB_API_ROOT,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._owner = owner
        self._repo = repo
        self._asset_name = asset_name
        self._api_url = f"{api_root.rstrip('/')}/repos/{owner}/{repo}/releases/latest"
        self._timeout = timeout

    @property
    def api_url(self) -> str:
        return self._api_url

    def fetch_latest(self) -> ReleaseDescriptor | None:
        data = self._request_json(self._api_url)
        if not isinstance(data, dict):
            return None
        return self._build_descriptor(data)

    def _request_json(self, url: str) -> object | None:
        request = build_request(url, accept="application/vnd.github+json")
        try:
            with urlopen(request, timeout=self._timeout) as response:  # nosec - GitHub API over HTTPS
                return json.load(response)
        except (OSError, URLError, HTTPException, ValueError) as exc:
            _LOGGER.warning(
                "Failed to query release information for %s/%s: %s",
                self._owner,
                self._repo,
                exc,
            )
            return None

    def _build_descriptor(self, data: dict) -> ReleaseDescriptor | None:
        tag = str(data.get("tag_name") or "").strip()
        if not tag:
            _LOGGER.warning("Latest release of %s/%s has no tag", self._owner, self._repo)
            return None

        assets = [asset for asset in data.get("assets") or [] if isinstance(asset, dict)]
        asset = _find_asset(assets, self._asset_name)
        if asset is None:
            _LOGGER.warning(
                "Failed to find asset %s in release %s of %s/%s",
                self._asset_name,
                tag,
                self._owner,
                self._repo,
            )
            return None

        download_url = asset.get("browser_download_url")
        if not isinstance(download_url, str) or not download_url.strip():
            _LOGGER.warning("Release %s asset %s has no download URL", tag, self._asset_name)
            return None

        digest = normalise_sha256(asset.get("digest"))
        if digest is None:
            hash_asset = _find_asset(assets, f"{self._asset_name}{HASH_ASSET_SUFFIX}")
            if hash_asset is not None:
                try:
                    digest = self._download_companion_hash(hash_asset)
                except DownloadFailed as exc:
                    _LOGGER.warning("Refusing release %s: %s", tag, exc)
                    return None

        size = asset.get("size")
        descriptor = ReleaseDescriptor(
            tag=tag,
            asset_url=download_url.strip(),
            published_at=parse_timestamp(data.get("published_at")),
            asset_name=self._asset_name,
            size=size if isinstance(size, int) and size > 0 else None,
            digest=digest,
        )
        _LOGGER.debug(
            "Release %s of %s/%s: asset=%s size=%s digest=%s",
            tag,
            self._owner,
            self._repo,
            descriptor.asset_url,
            descriptor.size,
            "present" if descriptor.digest else "missing",
        )
        return descriptor

    def _download_companion_hash(self, asset: dict) -> str:
        url = asset.get("browser_download_url")
        if not isinstance(url, str) or not url.strip():
            raise DownloadFailed(f"Hash asset {asset.get('name')} has no download URL")
        try:
            with urlopen(build_request(url.strip()), timeout=self._timeout) as response:  # nosec - HTTPS
                text = response.read().decode("utf-8")
        except (OSError, URLError, HTTPException, UnicodeDecodeError) as exc:
            raise DownloadFailed(f"Failed to download hash file: {exc}") from exc
        digest = normalise_sha256(parse_hash_text(text))
        if digest is None:
            raise DownloadFailed("Hash file did not contain a SHA-256 digest")
        return digest


class CustomUrlReleaseProvider:
    """Serve a release from a plain web folder.

    The folder must contain a ``version`` file holding the release tag next
    to the release asset itself.
    """

    def __init__(
        self,
        base_url: str,
        asset_name: str,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._asset_name = asset_name
        self._timeout = timeout

    def fetch_latest(self) -> ReleaseDescriptor | None:
        version_url = urljoin(self._base_url, CUSTOM_RELEASE_VERSION_PATH)
        try:
            with urlopen(build_request(version_url), timeout=self._timeout) as response:  # nosec - user supplied
                tag = response.read().decode("utf-8").strip()
        except (OSError, URLError, HTTPException, UnicodeDecodeError) as exc:
            _LOGGER.warning("Failed to query custom release %s: %s", version_url, exc)
            return None
        if not tag:
            _LOGGER.warning("Custom release %s returned an empty version", version_url)
            return None
        return ReleaseDescriptor(
            tag=tag,
            asset_url=urljoin(self._base_url, self._asset_name),
            asset_name=self._asset_name,
        )


class LocalFolderReleaseProvider:
    """Serve release metadata from a local directory for testing."""

    def __init__(self, folder: Path) -> None:
        self._folder = Path(folder)

    def fetch_latest(self) -> ReleaseDescriptor | None:
        metadata_path = self._folder / "release.json"
        if not metadata_path.exists():
            _LOGGER.debug("Local release metadata missing: %s", metadata_path)
            return None
        try:
            data = json.loads(metadata_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.debug("Failed to read local release metadata: %s", exc)
            return None
        if not isinstance(data, dict):
            return None

        tag = str(data.get("tag") or data.get("version") or "").strip()
        asset_name = str(data.get("asset") or "").strip()
        if not tag or not asset_name:
            _LOGGER.debug("Local release metadata incomplete: tag=%s asset=%s", tag, asset_name)
            return None

        asset_path = self._folder / asset_name
        if not asset_path.exists():
            _LOGGER.debug("Local release asset missing: %s", asset_path)
            return None

        _LOGGER.info("Local release %s will supply asset %s", tag, asset_name)
        return ReleaseDescriptor(
            tag=tag,
            asset_url=asset_path.resolve().as_uri(),
            published_at=parse_timestamp(data.get("published_at")),
            asset_name=asset_name,
            size=asset_path.stat().st_size,
            digest=normalise_sha256(data.get("sha256")),
        )


def parse_timestamp(raw: object) -> datetime.datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError:
        return None


def _find_asset(assets: Iterable[dict], name: str) -> dict | None:
    for asset in assets:
        if str(asset.get("name") or "").strip() == name:
            return asset
    return None


__all__ = [
    "CustomUrlReleaseProvider",
    "GitHubReleaseProvider",
    "LocalFolderReleaseProvider",
    "ReleaseProvider",
    "build_request",
    "parse_timestamp",
]
