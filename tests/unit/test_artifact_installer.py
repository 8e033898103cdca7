from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path

import pytest

from services.update import (
    ArtifactInstaller,
    DownloadFailed,
    ExtractionFailed,
    SwapFailed,
    load_install_record,
)
from tests.unit.launch_test_utils import (
    RUNTIME_EXECUTABLE,
    RUNTIME_SCRIPT,
    build_runtime_archive,
    release_for,
    snapshot_tree,
)


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "xlcore"
    directory.mkdir()
    return directory


def _install(tmp_path: Path, install_dir: Path, tag: str, **archive_kwargs) -> None:
    archive = build_runtime_archive(tmp_path / tag, **archive_kwargs)
    ArtifactInstaller(install_dir).install(release_for(archive, tag))


def test_first_install_swaps_in_runtime_and_writes_record(tmp_path: Path, install_dir: Path) -> None:
    archive = build_runtime_archive(tmp_path)
    installer = ArtifactInstaller(install_dir)

    record = installer.install(release_for(archive, "1.1.0.0"))

    assert record.installed_version == "1.1.0.0"
    runtime = install_dir / "runtime"
    assert runtime.is_symlink()
    assert record.install_path == install_dir / os.readlink(runtime)
    assert record.install_path.parent == install_dir / "releases"
    executable = runtime / RUNTIME_EXECUTABLE
    assert executable.read_bytes() == RUNTIME_SCRIPT
    assert os.access(executable, os.X_OK)
    assert (runtime / "lib" / "libskia.so").read_bytes() == b"library"
    assert not (install_dir / ".staging").exists()
    assert len(list((install_dir / "releases").iterdir())) == 1

    stored = json.loads((install_dir / "versiondata").read_text(encoding="utf-8"))
    assert stored == {
        "installed_version": "1.1.0.0",
        "install_path": f"releases/{record.install_path.name}",
    }
    loaded = load_install_record(install_dir)
    assert loaded == record


def test_install_unwraps_single_top_level_directory(tmp_path: Path, install_dir: Path) -> None:
    archive = build_runtime_archive(tmp_path, top_level="XIVLauncher")

    ArtifactInstaller(install_dir).install(release_for(archive, "1.1.0.1"))

    assert (install_dir / "runtime" / RUNTIME_EXECUTABLE).is_file()


def test_updates_retain_one_previous_generation(tmp_path: Path, install_dir: Path) -> None:
    for tag in ("1.0.0", "1.0.1", "1.0.2"):
        _install(tmp_path, install_dir, tag)

    releases = sorted(path.name for path in (install_dir / "releases").iterdir())
    assert len(releases) == 2
    assert releases[0].startswith("1.0.1-")
    assert releases[1].startswith("1.0.2-")
    assert Path(os.readlink(install_dir / "runtime")).name == releases[1]
    record = load_install_record(install_dir)
    assert record is not None
    assert record.installed_version == "1.0.2"


def test_digest_mismatch_leaves_install_directory_untouched(tmp_path: Path, install_dir: Path) -> None:
    _install(tmp_path, install_dir, "1.0.0")
    before = snapshot_tree(install_dir)
    archive = build_runtime_archive(tmp_path / "bad")
    release = release_for(archive, "1.0.1", digest="0" * 64)

    with pytest.raises(DownloadFailed):
        ArtifactInstaller(install_dir).install(release)

    assert snapshot_tree(install_dir) == before


def test_truncated_download_is_rejected_by_size(tmp_path: Path, install_dir: Path) -> None:
    archive = build_runtime_archive(tmp_path)
    release = release_for(archive, "1.0.0", digest=None)
    oversized = dataclasses.replace(release, size=release.size + 10)

    with pytest.raises(DownloadFailed):
        ArtifactInstaller(install_dir).install(oversized)

    assert snapshot_tree(install_dir) == {}


def test_archive_without_executable_is_rejected(tmp_path: Path, install_dir: Path) -> None:
    _install(tmp_path, install_dir, "1.0.0")
    before = snapshot_tree(install_dir)
    archive = build_runtime_archive(tmp_path / "broken", {"README": b"nothing here"})

    with pytest.raises(ExtractionFailed):
        ArtifactInstaller(install_dir).install(release_for(archive, "1.0.1"))

    assert snapshot_tree(install_dir) == before


def test_archive_escaping_the_root_is_rejected(tmp_path: Path, install_dir: Path) -> None:
    archive = build_runtime_archive(
        tmp_path,
        {RUNTIME_EXECUTABLE: RUNTIME_SCRIPT, "../../escaped": b"evil"},
    )

    with pytest.raises(ExtractionFailed):
        ArtifactInstaller(install_dir).install(release_for(archive, "1.0.0"))

    assert snapshot_tree(install_dir) == {}
    assert not (tmp_path / "escaped").exists()


def test_swap_failure_discards_published_tree(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, install_dir: Path
) -> None:
    _install(tmp_path, install_dir, "1.0.0")
    before = snapshot_tree(install_dir)
    archive = build_runtime_archive(tmp_path / "next")

    def failing_symlink(*args, **kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr("services.update.installer.os.symlink", failing_symlink)

    with pytest.raises(SwapFailed):
        ArtifactInstaller(install_dir).install(release_for(archive, "1.0.1"))

    assert snapshot_tree(install_dir) == before


def test_failed_first_install_removes_created_directories(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, install_dir: Path
) -> None:
    archive = build_runtime_archive(tmp_path)

    def failing_symlink(*args, **kwargs):
        raise OSError("no symlinks here")

    monkeypatch.setattr("services.update.installer.os.symlink", failing_symlink)

    with pytest.raises(SwapFailed):
        ArtifactInstaller(install_dir).install(release_for(archive, "1.0.0"))

    assert snapshot_tree(install_dir) == {}


def test_staging_failure_is_reported_as_download_failure(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, install_dir: Path
) -> None:
    _install(tmp_path, install_dir, "1.0.0")
    before = snapshot_tree(install_dir)
    archive = build_runtime_archive(tmp_path / "next")

    def disk_full(*args, **kwargs):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr("services.update.installer.tempfile.mkdtemp", disk_full)

    with pytest.raises(DownloadFailed, match="No space left"):
        ArtifactInstaller(install_dir).install(release_for(archive, "1.0.1"))

    assert snapshot_tree(install_dir) == before


def test_unreadable_download_is_reported_as_download_failure(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, install_dir: Path
) -> None:
    archive = build_runtime_archive(tmp_path)

    def unreadable(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("services.update.release_assets.calculate_sha256", unreadable)

    with pytest.raises(DownloadFailed, match="Permission denied"):
        ArtifactInstaller(install_dir).install(release_for(archive, "1.0.0"))

    assert snapshot_tree(install_dir) == {}


def test_record_write_failure_keeps_old_record_consistent(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, install_dir: Path
) -> None:
    _install(
        tmp_path,
        install_dir,
        "1.0.0",
        files={RUNTIME_EXECUTABLE: RUNTIME_SCRIPT, "RELEASE": b"1.0.0"},
    )
    archive = build_runtime_archive(
        tmp_path / "next", {RUNTIME_EXECUTABLE: RUNTIME_SCRIPT, "RELEASE": b"1.0.1"}
    )

    def failing_write(*args, **kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr("services.update.installer.write_install_record", failing_write)

    with pytest.raises(SwapFailed, match="install record"):
        ArtifactInstaller(install_dir).install(release_for(archive, "1.0.1"))

    assert (install_dir / "runtime" / "RELEASE").read_bytes() == b"1.0.1"
    record = load_install_record(install_dir)
    assert record is not None
    assert record.installed_version == "1.0.0"
    assert (record.install_path / "RELEASE").read_bytes() == b"1.0.0"


def test_prune_failure_does_not_fail_committed_install(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    install_dir: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    _install(tmp_path, install_dir, "1.0.0")
    archive = build_runtime_archive(tmp_path / "next")

    real_iterdir = Path.iterdir

    def unreadable_releases(self):
        if self == install_dir / "releases":
            raise PermissionError(13, "Permission denied")
        return real_iterdir(self)

    monkeypatch.setattr(Path, "iterdir", unreadable_releases)

    with caplog.at_level("WARNING"):
        record = ArtifactInstaller(install_dir).install(release_for(archive, "1.0.1"))

    assert record.installed_version == "1.0.1"
    assert "Unable to prune old runtime releases" in caplog.text
