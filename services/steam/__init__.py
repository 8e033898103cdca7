"""Steam compatibility tool integration."""

from __future__ import annotations

from services.steam.compat_tool import (
    SteamToolError,
    SteamToolInstallation,
    install_steam_tool,
    render_launch_script,
)

__all__ = [
    "SteamToolError",
    "SteamToolInstallation",
    "install_steam_tool",
    "render_launch_script",
]
