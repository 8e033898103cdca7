from __future__ import annotations

from pathlib import Path

import pytest

from app import cli
from app.config import load_launcher_defaults
from services.launch import SecretsProviderMode
from shared import logging_config


@pytest.fixture(autouse=True)
def reset_logging():
    logging_config._reset_for_tests()
    try:
        yield
    finally:
        logging_config._reset_for_tests()


def _parse(argv: list[str]):
    defaults = load_launcher_defaults()
    return cli.build_parser(defaults).parse_args(argv), defaults


def test_launch_options_build_configuration(tmp_path: Path) -> None:
    args, defaults = _parse(
        [
            "--xlm-updater-disable",
            "--xlm-updater-repo-owner",
            "someone",
            "launch",
            "--install-directory",
            str(tmp_path),
            "--custom-xlcore-release",
            "https://mirror.invalid/xlcore",
            "--use-fallback-secret-provider",
            "--skip-update",
            "--launch-arg=--debug",
            "--launch-arg",
            "two words",
            "--env",
            "A=1",
            "--env",
            "B=x=y",
            "--env",
            "A=2",
            "waitforexitandrun",
            "/steam/steamapps/common/game.exe",
        ]
    )

    configuration = cli.build_launch_configuration(args, defaults)

    assert configuration.install_directory == tmp_path
    assert configuration.custom_release_url == "https://mirror.invalid/xlcore"
    assert configuration.secrets_provider_mode is SecretsProviderMode.FALLBACK_FILE
    assert configuration.skip_update is True
    assert configuration.self_update_enabled is False
    assert configuration.updater_repo_owner == "someone"
    assert configuration.updater_repo_name == "xlm"
    assert configuration.extra_launch_args == ("--debug", "two words")
    assert dict(configuration.extra_env_vars) == {"A": "2", "B": "x=y"}
    assert configuration.executable_name == "XIVLauncher.Core"
    assert args.steam_args == ["waitforexitandrun", "/steam/steamapps/common/game.exe"]


def test_launch_defaults_come_from_config(tmp_path: Path) -> None:
    args, defaults = _parse(["launch"])

    configuration = cli.build_launch_configuration(args, defaults)

    assert configuration.install_directory == defaults.install_directory
    assert configuration.repo_owner == "goatcorp"
    assert configuration.repo_name == "XIVLauncher.Core"
    assert configuration.release_asset == "XIVLauncher.Core.tar.gz"
    assert configuration.secrets_provider_mode is SecretsProviderMode.SYSTEM
    assert configuration.self_update_enabled is True


def test_malformed_env_assignment_is_rejected(capsys) -> None:
    with pytest.raises(SystemExit):
        _parse(["launch", "--env", "NOVALUE"])

    assert "expected NAME=VALUE" in capsys.readouterr().err


@pytest.mark.parametrize(("code", "expected"), [(0, 0), (3, 3), (-15, 143), (-9, 137)])
def test_signal_return_codes_are_mapped(code: int, expected: int) -> None:
    assert cli.normalise_exit_code(code) == expected


def test_main_runs_launch_pipeline(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    captured = {}

    class FakeOrchestrator:
        def run(self) -> int:
            return -15

    def fake_build(configuration, *, grace_delay):
        captured["configuration"] = configuration
        captured["grace_delay"] = grace_delay
        return FakeOrchestrator()

    monkeypatch.setattr(cli, "build_launch_orchestrator", fake_build)

    exit_code = cli.main(["launch", "--install-directory", str(tmp_path), "run"])

    assert exit_code == 143
    assert captured["configuration"].install_directory == tmp_path
    assert captured["grace_delay"] == pytest.approx(1.0)


def test_main_installs_steam_tool(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls = []
    monkeypatch.setattr(
        cli,
        "install_steam_tool",
        lambda path, **kwargs: calls.append((path, kwargs)),
    )

    exit_code = cli.main(
        [
            "install-steam-tool",
            "--steam-compat-path",
            str(tmp_path / "compatibilitytools.d"),
            "--extra-launch-args=--skip-update",
        ]
    )

    assert exit_code == 0
    assert calls == [
        (
            tmp_path / "compatibilitytools.d",
            {"extra_launch_args": "--skip-update", "extra_env_vars": ""},
        )
    ]


def test_steam_tool_failure_exits_non_zero(tmp_path: Path) -> None:
    exit_code = cli.main(
        [
            "install-steam-tool",
            "--steam-compat-path",
            str(tmp_path / "missing" / "compatibilitytools.d"),
        ]
    )

    assert exit_code == 1
