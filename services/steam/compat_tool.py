"""Install the launcher as a Steam compatibility tool."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

from services.update.self_update import find_packaged_executable

_LOGGER = logging.getLogger(__name__)

COMPAT_DIRNAME = "XLM"
COMPATIBILITYTOOL_VDF_FILENAME = "compatibilitytool.vdf"
TOOLMANIFEST_VDF_FILENAME = "toolmanifest.vdf"
LAUNCH_SCRIPT_FILENAME = "xlm.sh"
BINARY_FILENAME = "xlm"
RUNTIME_DIRNAME = "xlcore"

COMPATIBILITYTOOL_VDF = """\
"compatibilitytools"
{
  "compat_tools"
  {
    "XLM"
    {
      "install_path" "."
      "display_name" "XLM"
      "from_oslist" "windows"
      "to_oslist" "linux"
    }
  }
}
"""

TOOLMANIFEST_VDF = """\
"manifest"
{
  "version" "2"
  "commandline" "/xlm.sh %verb%"
}
"""

_LAUNCH_SCRIPT_TEMPLATE = """\
#!/usr/bin/env bash

tooldir="$(realpath "$(dirname "$0")")"

{env_prefix}exec "$tooldir/{binary}" launch {launch_args}--install-directory "$tooldir/{runtime_dir}" "$@"
"""


class SteamToolError(RuntimeError):
    """Raised when the compatibility tool cannot be installed."""


@dataclass(frozen=True)
class SteamToolInstallation:
    directory: Path
    launch_script: Path
    binary: Path


def render_launch_script(extra_env_vars: str = "", extra_launch_args: str = "") -> str:
    """Return the ``xlm.sh`` shim Steam invokes for every launch."""

    env_prefix = f"{extra_env_vars.strip()} " if extra_env_vars.strip() else ""
    launch_args = f"{extra_launch_args.strip()} " if extra_launch_args.strip() else ""
    return _LAUNCH_SCRIPT_TEMPLATE.format(
        env_prefix=env_prefix,
        binary=BINARY_FILENAME,
        launch_args=launch_args,
        runtime_dir=RUNTIME_DIRNAME,
    )


def default_source_executable() -> Path:
    packaged = find_packaged_executable()
    if packaged is not None:
        return packaged
    return Path(sys.argv[0]).resolve()


def install_steam_tool(
    steam_compat_path: Path,
    *,
    extra_launch_args: str = "",
    extra_env_vars: str = "",
    source_executable: Path | None = None,
) -> SteamToolInstallation:
    """Write the compatibility tool into ``<steam_compat_path>/XLM``.

    ``steam_compat_path`` is Steam's ``compatibilitytools.d`` directory.  Its
    parent must exist; otherwise Steam has most likely never been started.
    """

    steam_compat_path = Path(steam_compat_path).expanduser()
    parent = steam_compat_path.parent
    if not parent.is_dir():
        raise SteamToolError(
            f"Parent directory of the Steam compatibility path ({parent}) does not exist. "
            "Start Steam once or check the install method."
        )

    source = Path(source_executable) if source_executable is not None else default_source_executable()
    if not source.is_file():
        raise SteamToolError(f"Launcher executable {source} does not exist")

    tool_dir = steam_compat_path / COMPAT_DIRNAME
    _LOGGER.info(
        "Installing compatibility tool to %s (extra launch args: %r, extra env vars: %r)",
        tool_dir,
        extra_launch_args,
        extra_env_vars,
    )
    try:
        tool_dir.mkdir(parents=True, exist_ok=True)
        (tool_dir / COMPATIBILITYTOOL_VDF_FILENAME).write_text(COMPATIBILITYTOOL_VDF, encoding="utf-8")
        (tool_dir / TOOLMANIFEST_VDF_FILENAME).write_text(TOOLMANIFEST_VDF, encoding="utf-8")

        launch_script = tool_dir / LAUNCH_SCRIPT_FILENAME
        launch_script.write_text(render_launch_script(extra_env_vars, extra_launch_args), encoding="utf-8")
        os.chmod(launch_script, 0o755)

        binary = tool_dir / BINARY_FILENAME
        if source.resolve() != binary.resolve():
            shutil.copy2(source, binary)
        os.chmod(binary, 0o755)
    except OSError as exc:
        raise SteamToolError(f"Unable to install compatibility tool to {tool_dir}: {exc}") from exc

    _LOGGER.info("Compatibility tool installed; restart Steam for it to appear")
    return SteamToolInstallation(directory=tool_dir, launch_script=launch_script, binary=binary)


__all__ = [
    "SteamToolError",
    "SteamToolInstallation",
    "default_source_executable",
    "install_steam_tool",
    "render_launch_script",
]
