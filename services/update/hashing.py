"""Hashing helpers for release asset verification."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

from services.update.models import DownloadFailed

_SHA256_PATTERN = re.compile(r"[0-9a-f]{64}")


def calculate_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as source:
        for chunk in iter(lambda: source.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def parse_hash_text(text: str) -> str:
    """Return the first token of a ``sha256sum`` style hash file."""

    for token in text.split():
        if token:
            return token.strip().lower()
    raise DownloadFailed("Hash file did not contain a digest")


def normalise_sha256(raw: object) -> str | None:
    """Return a lower-case SHA-256 hex digest or ``None`` when unusable.

    Accepts bare digests as well as the ``sha256:<hex>`` form used by the
    GitHub Releases API.  Digests for other algorithms are ignored.
    """

    if not isinstance(raw, str):
        return None
    value = raw.strip()
    if not value:
        return None
    for separator in (":", "="):
        if separator in value:
            algorithm, value = value.split(separator, 1)
            if algorithm.strip().lower() != "sha256":
                return None
            break
    value = value.strip().lower()
    if not _SHA256_PATTERN.fullmatch(value):
        return None
    return value


__all__ = ["calculate_sha256", "normalise_sha256", "parse_hash_text"]
