"""Command line entry point for the ``xlm`` launcher."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from app.config import LauncherDefaults, get_launcher_defaults
from app.version import get_app_version
from services.launch import (
    LaunchConfiguration,
    SecretsProviderMode,
    build_launch_orchestrator,
    merge_env_assignments,
)
from services.steam import SteamToolError, install_steam_tool
from shared.logging_config import ensure_app_logging

_LOGGER = logging.getLogger(__name__)


def _parse_env_assignment(value: str) -> tuple[str, str]:
    name, separator, assigned = value.partition("=")
    name = name.strip()
    if not separator or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    return name, assigned


def build_parser(defaults: LauncherDefaults) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xlm",
        description="Launch and keep XIVLauncher.Core up to date from Steam.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_app_version()}")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to stderr.")
    parser.add_argument(
        "--xlm-updater-disable",
        action="store_true",
        help="Do not check for updates to xlm itself.",
    )
    parser.add_argument(
        "--xlm-updater-repo-owner",
        default=defaults.updater.repo_owner,
        help="Owner of the repository that publishes xlm releases.",
    )
    parser.add_argument(
        "--xlm-updater-repo-name",
        default=defaults.updater.repo_name,
        help="Name of the repository that publishes xlm releases.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    launch = subparsers.add_parser("launch", help="Update and start XIVLauncher.Core.")
    launch.add_argument(
        "--install-directory",
        type=Path,
        default=defaults.install_directory,
        help="Directory that holds the managed runtime.",
    )
    launch.add_argument("--xlcore-repo-owner", default=defaults.runtime.repo_owner)
    launch.add_argument("--xlcore-repo-name", default=defaults.runtime.repo_name)
    launch.add_argument("--xlcore-release-asset", default=defaults.runtime.release_asset)
    launch.add_argument(
        "--custom-xlcore-release",
        default=None,
        metavar="URL",
        help="Base URL serving 'version' and the release asset, used instead of GitHub.",
    )
    launch.add_argument(
        "--use-fallback-secret-provider",
        action="store_true",
        help="Store credentials in a file when no system secrets provider is available.",
    )
    launch.add_argument(
        "--skip-update",
        action="store_true",
        help="Do not check for runtime updates when a runtime is installed.",
    )
    launch.add_argument(
        "--launch-arg",
        dest="launch_args",
        action="append",
        default=[],
        metavar="ARG",
        help="Extra argument passed to the runtime (repeatable).",
    )
    launch.add_argument(
        "--env",
        dest="env_vars",
        action="append",
        default=[],
        type=_parse_env_assignment,
        metavar="NAME=VALUE",
        help="Extra environment variable for the runtime (repeatable, later wins).",
    )
    launch.add_argument("steam_args", nargs=argparse.REMAINDER, help=argparse.SUPPRESS)

    steam_tool = subparsers.add_parser(
        "install-steam-tool", help="Install xlm as a Steam compatibility tool."
    )
    steam_tool.add_argument(
        "--steam-compat-path",
        type=Path,
        required=True,
        help="Path to Steam's 'compatibilitytools.d' directory.",
    )
    steam_tool.add_argument(
        "--extra-launch-args",
        default="",
        help="Extra arguments appended to 'xlm launch' in the generated script.",
    )
    steam_tool.add_argument(
        "--extra-env-vars",
        default="",
        help="Environment assignments prefixed to the command in the generated script.",
    )
    return parser


def build_launch_configuration(
    args: argparse.Namespace, defaults: LauncherDefaults
) -> LaunchConfiguration:
    return LaunchConfiguration(
        install_directory=Path(args.install_directory).expanduser(),
        repo_owner=args.xlcore_repo_owner,
        repo_name=args.xlcore_repo_name,
        release_asset=args.xlcore_release_asset,
        executable_name=defaults.runtime.executable,
        extra_launch_args=tuple(args.launch_args),
        extra_env_vars=merge_env_assignments(args.env_vars),
        secrets_provider_mode=(
            SecretsProviderMode.FALLBACK_FILE
            if args.use_fallback_secret_provider
            else SecretsProviderMode.SYSTEM
        ),
        self_update_enabled=not args.xlm_updater_disable,
        skip_update=args.skip_update,
        custom_release_url=args.custom_xlcore_release,
        updater_repo_owner=args.xlm_updater_repo_owner,
        updater_repo_name=args.xlm_updater_repo_name,
        updater_asset=defaults.updater.release_asset,
    )


def normalise_exit_code(code: int) -> int:
    """Map a child return code to a shell exit status (signals become ``128 + n``)."""

    if code < 0:
        return 128 - code
    return code


def _run_launch(args: argparse.Namespace, defaults: LauncherDefaults) -> int:
    if args.steam_args:
        _LOGGER.debug("Ignoring arguments passed by Steam: %s", args.steam_args)
    configuration = build_launch_configuration(args, defaults)
    orchestrator = build_launch_orchestrator(
        configuration, grace_delay=defaults.guard_grace_delay_seconds
    )
    return normalise_exit_code(orchestrator.run())


def _run_install_steam_tool(args: argparse.Namespace) -> int:
    try:
        install_steam_tool(
            args.steam_compat_path,
            extra_launch_args=args.extra_launch_args,
            extra_env_vars=args.extra_env_vars,
        )
    except SteamToolError as exc:
        _LOGGER.error("%s", exc)
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    defaults = get_launcher_defaults()
    args = build_parser(defaults).parse_args(argv)
    ensure_app_logging(verbose=args.verbose)
    _LOGGER.debug("xlm %s", get_app_version())

    if args.command == "launch":
        return _run_launch(args, defaults)
    return _run_install_steam_tool(args)


if __name__ == "__main__":
    raise SystemExit(main())
