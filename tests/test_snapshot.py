from __future__ import annotations

import tarfile
from pathlib import Path

import pytest

from dotlink.errors import SnapshotError
from dotlink.models import ManagedItem, SnapshotOutcome
from dotlink.snapshot import create_snapshot, describe_archives, list_archives

TS = "20260102-030405"


def _items(source: Path, target: Path, *names: str) -> list[ManagedItem]:
    return [ManagedItem(name=name, source_path=source / name, target_path=target / name) for name in names]


@pytest.fixture
def layout(tmp_path: Path) -> tuple[Path, Path, Path]:
    source = tmp_path / "repo"
    target = tmp_path / "home"
    backups = tmp_path / "backups"
    source.mkdir()
    target.mkdir()
    backups.mkdir()
    return source, target, backups


def test_snapshot_archives_only_regular_files(layout: tuple[Path, Path, Path]) -> None:
    source, target, backups = layout
    (source / ".bashrc").write_text("repo\n")
    (source / ".profile").write_text("repo\n")
    (target / ".bashrc").write_text("mine\n")
    (target / ".profile").symlink_to(source / ".profile")

    result = create_snapshot(_items(source, target, ".bashrc", ".profile", ".vimrc"), backups, TS)

    assert result.outcome is SnapshotOutcome.CREATED
    assert result.archive == backups / f"backup-{TS}.tar.gz"
    assert result.file_count == 1
    assert result.size == result.archive.stat().st_size
    assert not (backups / TS).exists()

    with tarfile.open(result.archive, "r:gz") as handle:
        names = handle.getnames()
        member = handle.extractfile(f"{TS}/.bashrc")
        assert member is not None
        assert member.read() == b"mine\n"
    assert f"{TS}/.profile" not in names


def test_snapshot_with_nothing_to_back_up(layout: tuple[Path, Path, Path]) -> None:
    source, target, backups = layout

    result = create_snapshot(_items(source, target, ".bashrc"), backups, TS)

    assert result.outcome is SnapshotOutcome.EMPTY
    assert result.archive is None
    assert list(backups.iterdir()) == []


def test_snapshot_copy_failure_removes_staging(
    layout: tuple[Path, Path, Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    source, target, backups = layout
    (target / ".bashrc").write_text("mine\n")

    def fail_copy(*_args, **_kwargs):
        raise PermissionError("denied")

    monkeypatch.setattr("dotlink.snapshot.shutil.copy2", fail_copy)

    with pytest.raises(SnapshotError):
        create_snapshot(_items(source, target, ".bashrc"), backups, TS)

    assert list(backups.iterdir()) == []


def test_snapshot_compression_failure_keeps_staging_only(
    layout: tuple[Path, Path, Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    source, target, backups = layout
    (target / ".bashrc").write_text("mine\n")

    def fail_open(*_args, **_kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("dotlink.snapshot.tarfile.open", fail_open)

    with pytest.raises(SnapshotError, match="Staged files kept"):
        create_snapshot(_items(source, target, ".bashrc"), backups, TS)

    assert [child.name for child in backups.iterdir()] == [TS]
    assert (backups / TS / ".bashrc").read_text() == "mine\n"


def test_snapshot_failure_while_writing_removes_partial_archive(
    layout: tuple[Path, Path, Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    source, target, backups = layout
    (target / ".bashrc").write_text("mine\n")

    def fail_add(self, *_args, **_kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(tarfile.TarFile, "add", fail_add)

    with pytest.raises(SnapshotError, match="Staged files kept"):
        create_snapshot(_items(source, target, ".bashrc"), backups, TS)

    assert [child.name for child in backups.iterdir()] == [TS]
    assert list(backups.glob("*.tar.gz")) == []
    assert list(backups.glob("*.partial")) == []
    assert (backups / TS / ".bashrc").read_text() == "mine\n"


def test_snapshot_name_collision_gets_sequence(layout: tuple[Path, Path, Path]) -> None:
    source, target, backups = layout
    (target / ".bashrc").write_text("mine\n")
    items = _items(source, target, ".bashrc")

    first = create_snapshot(items, backups, TS)
    second = create_snapshot(items, backups, TS)

    assert first.archive is not None and second.archive is not None
    assert second.archive.name == f"backup-{TS}_01.tar.gz"
    assert list_archives(backups) == [first.archive, second.archive]


def test_list_and_describe_archives(tmp_path: Path) -> None:
    for stamp in ("20260103-000000", "20260101-000000", "20260102-000000"):
        (tmp_path / f"backup-{stamp}.tar.gz").write_bytes(b"x" * 3)
    (tmp_path / "unrelated.tar.gz").write_bytes(b"")

    archives = list_archives(tmp_path)
    assert [path.name for path in archives] == [
        "backup-20260101-000000.tar.gz",
        "backup-20260102-000000.tar.gz",
        "backup-20260103-000000.tar.gz",
    ]

    described = describe_archives(tmp_path)
    assert described[0].path.name == "backup-20260103-000000.tar.gz"
    assert described[0].size == 3

    assert list_archives(tmp_path / "missing") == []
