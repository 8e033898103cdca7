from __future__ import annotations

import io
import os
import tarfile
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

import pytest

from services.update import ExtractionFailed
from services.update import constants
from services.update.archive import extract_archive


def _tar(path: Path, members: list[tarfile.TarInfo], payloads: dict[str, bytes]) -> Path:
    with tarfile.open(path, "w:gz") as archive:
        for info in members:
            data = payloads.get(info.name)
            archive.addfile(info, io.BytesIO(data) if data is not None else None)
    return path


def _file(name: str, size: int, mode: int = 0o644) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.size = size
    info.mode = mode
    return info


def _link(name: str, target: str, kind: bytes = tarfile.SYMTYPE) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = kind
    info.linkname = target
    return info


def test_tar_extraction_keeps_modes_and_internal_links(tmp_path: Path) -> None:
    archive = _tar(
        tmp_path / "release.tar.gz",
        [
            _file("XIVLauncher.Core", 4, 0o755),
            _file("lib/libfoo.so.1", 3),
            _link("lib/libfoo.so", "libfoo.so.1"),
            _link("lib/copy.so", "lib/libfoo.so.1", tarfile.LNKTYPE),
        ],
        {"XIVLauncher.Core": b"#!x\n", "lib/libfoo.so.1": b"foo"},
    )

    root = extract_archive(archive, tmp_path / "out")

    assert root == tmp_path / "out"
    assert os.access(root / "XIVLauncher.Core", os.X_OK)
    assert not os.access(root / "lib" / "libfoo.so.1", os.X_OK)
    assert os.readlink(root / "lib" / "libfoo.so") == "libfoo.so.1"
    assert (root / "lib" / "copy.so").read_bytes() == b"foo"


def test_symlink_escaping_root_is_rejected(tmp_path: Path) -> None:
    archive = _tar(tmp_path / "release.tar.gz", [_link("passwd", "../../../etc/passwd")], {})

    with pytest.raises(ExtractionFailed, match="points outside"):
        extract_archive(archive, tmp_path / "out")


def test_absolute_member_is_rejected(tmp_path: Path) -> None:
    archive = _tar(tmp_path / "release.tar.gz", [_file("/tmp/evil", 1)], {"/tmp/evil": b"x"})

    with pytest.raises(ExtractionFailed, match="absolute"):
        extract_archive(archive, tmp_path / "out")


def test_device_entries_are_rejected(tmp_path: Path) -> None:
    device = tarfile.TarInfo("dev/null")
    device.type = tarfile.CHRTYPE

    archive = _tar(tmp_path / "release.tar.gz", [device], {})

    with pytest.raises(ExtractionFailed, match="unsupported entry"):
        extract_archive(archive, tmp_path / "out")


def test_entry_limit_is_enforced(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(constants, "MAX_ARCHIVE_ENTRIES", 2)
    names = ["a", "b", "c"]
    archive = _tar(
        tmp_path / "release.tar.gz",
        [_file(name, 1) for name in names],
        {name: b"x" for name in names},
    )

    with pytest.raises(ExtractionFailed, match="too many entries"):
        extract_archive(archive, tmp_path / "out")


def test_highly_compressed_tar_is_rejected(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(constants, "MAX_COMPRESSION_RATIO", 2)
    archive = _tar(tmp_path / "release.tar.gz", [_file("zeros", 1 << 16)], {"zeros": bytes(1 << 16)})

    with pytest.raises(ExtractionFailed, match="compression ratio"):
        extract_archive(archive, tmp_path / "out")


def test_zip_release_is_supported(tmp_path: Path) -> None:
    archive_path = tmp_path / "release.zip"
    with ZipFile(archive_path, "w", compression=ZIP_DEFLATED) as archive:
        info = ZipInfo("XIVLauncher/XIVLauncher.Core")
        info.external_attr = 0o755 << 16
        archive.writestr(info, b"#!x\n")
        archive.writestr("__MACOSX/._XIVLauncher", b"")

    root = extract_archive(archive_path, tmp_path / "out")

    assert root == tmp_path / "out" / "XIVLauncher"
    assert os.access(root / "XIVLauncher.Core", os.X_OK)


def test_empty_archive_is_rejected(tmp_path: Path) -> None:
    archive = _tar(tmp_path / "release.tar.gz", [], {})

    with pytest.raises(ExtractionFailed, match="empty"):
        extract_archive(archive, tmp_path / "out")


def test_corrupt_archive_is_rejected(tmp_path: Path) -> None:
    archive = tmp_path / "release.tar.gz"
    archive.write_bytes(b"definitely not a tarball")

    with pytest.raises(ExtractionFailed):
        extract_archive(archive, tmp_path / "out")
