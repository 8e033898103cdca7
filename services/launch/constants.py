"""Constants shared across the launch modules."""

from __future__ import annotations

LOCK_FILENAME = ".xlm.lock"
DEFAULT_GRACE_DELAY_SECONDS = 1.0

PRELAUNCH_DIRNAME = "prelaunch.d"
POSTLAUNCH_DIRNAME = "postlaunch.d"
HOOK_SPAWN_FAILURE_STATUS = 127

FATAL_EXIT_CODE = 125

SECRET_PROVIDER_ENV = "XL_SECRET_PROVIDER"
SECRET_PROVIDER_FILE = "FILE"
COMPAT_TOOL_ENV = "XL_SCT"
PRELOAD_ENV = "XL_PRELOAD"
LD_PRELOAD_ENV = "LD_PRELOAD"
RUNTIME_EXIT_CODE_ENV = "XLM_RUNTIME_EXIT_CODE"
