"""Data models used by the update service."""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ReleaseDescriptor:
    """Metadata describing one downloadable release asset."""

    tag: str
    asset_url: str
    published_at: datetime.datetime | None = None
    asset_name: str = "release"
    size: int | None = None
    digest: str | None = None


@dataclass(frozen=True)
class InstallRecord:
    """The runtime version recorded as installed and where it lives."""

    installed_version: str
    install_path: Path


class UpdateError(RuntimeError):
    """Raised when an update cannot be downloaded, verified or applied."""


class DownloadFailed(UpdateError):
    """The release asset could not be downloaded or failed verification."""


class ExtractionFailed(UpdateError):
    """The downloaded archive could not be unpacked safely."""


class SwapFailed(UpdateError):
    """The staged tree could not be swapped in as the live install."""


class ResolutionKind(str, enum.Enum):
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Resolution:
    """Outcome of comparing the installed runtime with the latest release."""

    kind: ResolutionKind
    release: ReleaseDescriptor | None = None
    installed_version: str | None = None

    @classmethod
    def up_to_date(cls, installed_version: str) -> "Resolution":
        return cls(ResolutionKind.UP_TO_DATE, installed_version=installed_version)

    @classmethod
    def update_available(
        cls, release: ReleaseDescriptor, installed_version: str | None
    ) -> "Resolution":
        return cls(
            ResolutionKind.UPDATE_AVAILABLE,
            release=release,
            installed_version=installed_version,
        )

    @classmethod
    def unknown(cls, installed_version: str | None) -> "Resolution":
        return cls(ResolutionKind.UNKNOWN, installed_version=installed_version)


class SelfUpdateStatus(str, enum.Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SelfUpdateResult:
    """Outcome of a self-update attempt."""

    status: SelfUpdateStatus
    version: str | None = None
    reason: str | None = None

    @classmethod
    def updated(cls, version: str) -> "SelfUpdateResult":
        return cls(SelfUpdateStatus.UPDATED, version=version)

    @classmethod
    def skipped(cls, reason: str) -> "SelfUpdateResult":
        return cls(SelfUpdateStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "SelfUpdateResult":
        return cls(SelfUpdateStatus.FAILED, reason=reason)
