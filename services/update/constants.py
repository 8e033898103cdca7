"""Constants shared across the update service modules."""

from __future__ import annotations

GITHUB_API_ROOT = "https://api.github.com"

RUNTIME_EXECUTABLE_NAME = "XIVLauncher.Core"

INSTALL_RECORD_FILENAME = "versiondata"
STAGING_DIRNAME = ".staging"
RELEASES_DIRNAME = "releases"
RUNTIME_LINK_NAME = "runtime"

CUSTOM_RELEASE_VERSION_PATH = "version"
HASH_ASSET_SUFFIX = ".sha256"

ARCHIVE_ZIP_EXTENSIONS = (".zip",)

MAX_ARCHIVE_TOTAL_BYTES = 2 * 1024 * 1024 * 1024  # 2 GiB
MAX_ARCHIVE_FILE_SIZE = 1024 * 1024 * 1024  # 1 GiB per file
MAX_ARCHIVE_ENTRIES = 20000
MAX_COMPRESSION_RATIO = 200  # Uncompressed vs compressed bytes

REQUEST_TIMEOUT_SECONDS = 20
DOWNLOAD_TIMEOUT_SECONDS = 60
DOWNLOAD_CHUNK_SIZE = 128 * 1024

LOCAL_RELEASE_ENV = "XLM_UPDATE_LOCAL_DIR"
