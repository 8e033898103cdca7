"""Version of the running launcher, compared against self-update releases."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from importlib import resources

_LOGGER = logging.getLogger(__name__)

XLM_APP_VERSION = "XLM_APP_VERSION"
_FALLBACK_VERSION = "0.0.0-dev"


def _strip_prefix(raw_version: str) -> str:
    version = raw_version.strip()
    return version[1:] if version.startswith("v") else version


def _version_from_env() -> str | None:
    return _strip_prefix(os.environ.get(XLM_APP_VERSION, "")) or None


def _version_from_bundle() -> str | None:
    try:
        text = resources.files("app").joinpath("VERSION").read_text(encoding="utf-8")
    except (ModuleNotFoundError, OSError) as exc:
        _LOGGER.debug("Bundled VERSION file unavailable: %s", exc)
        return None
    return _strip_prefix(text) or None


@lru_cache(maxsize=1)
def get_app_version() -> str:
    """Return the embedded launcher version.

    ``XLM_APP_VERSION`` overrides the ``VERSION`` file shipped inside the
    ``app`` package.  The working directory is never consulted.
    """

    for resolver in (_version_from_env, _version_from_bundle):
        version = resolver()
        if version:
            return version
    _LOGGER.warning("Launcher version unknown; assuming %s", _FALLBACK_VERSION)
    return _FALLBACK_VERSION


__all__ = ["XLM_APP_VERSION", "get_app_version"]
