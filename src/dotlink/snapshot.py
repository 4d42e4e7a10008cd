"""Compressed snapshot archives of files occupying managed targets."""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
from pathlib import Path
from typing import Iterable

from .errors import SnapshotError
from .models import ArchiveInfo, ManagedItem, SnapshotOutcome, SnapshotResult
from .naming import archive_name, is_archive_name, unique_stamp

logger = logging.getLogger(__name__)


def create_snapshot(items: Iterable[ManagedItem], backup_root: Path, ts: str) -> SnapshotResult:
    """Archive every item whose target is a regular file into ``backup_root``.

    Files are staged in ``backup_root/<ts>`` and compressed into
    ``backup_root/backup-<ts>.tar.gz``. A failed copy removes the staging
    directory; a failed compression removes the partial archive but keeps the
    staging directory for inspection.
    """

    try:
        stamp = unique_stamp(backup_root, ts)
    except FileExistsError as exc:
        raise SnapshotError(str(exc)) from exc
    staging = backup_root / stamp

    try:
        staging.mkdir(parents=True)
    except OSError as exc:
        raise SnapshotError(f"Unable to create staging directory '{staging}': {exc}") from exc

    try:
        copied = _stage_files(items, staging)
    except OSError as exc:
        shutil.rmtree(staging, ignore_errors=True)
        raise SnapshotError(f"Unable to stage files in '{staging}': {exc}") from exc

    if copied == 0:
        staging.rmdir()
        logger.warning("No regular files found at managed targets; nothing to back up")
        return SnapshotResult(outcome=SnapshotOutcome.EMPTY)

    archive = backup_root / archive_name(stamp)
    partial = archive.with_name(f"{archive.name}.partial")
    try:
        with tarfile.open(partial, "w:gz") as handle:
            handle.add(staging, arcname=stamp)
        os.replace(partial, archive)
    except (OSError, tarfile.TarError) as exc:
        partial.unlink(missing_ok=True)
        raise SnapshotError(
            f"Unable to write archive '{archive}': {exc}. Staged files kept in '{staging}'."
        ) from exc

    try:
        shutil.rmtree(staging)
    except OSError as exc:
        logger.warning("Archive written but staging directory '%s' could not be removed: %s", staging, exc)

    size = archive.stat().st_size
    logger.info("Created snapshot %s (%d files, %d bytes)", archive.name, copied, size)
    return SnapshotResult(outcome=SnapshotOutcome.CREATED, archive=archive, file_count=copied, size=size)


def _stage_files(items: Iterable[ManagedItem], staging: Path) -> int:
    copied = 0
    for item in items:
        target = item.target_path
        if target.is_symlink() or not target.is_file():
            continue
        shutil.copy2(target, staging / target.name)
        logger.debug("Staged %s", target)
        copied += 1
    return copied


def list_archives(backup_root: Path) -> list[Path]:
    """Return snapshot archives under ``backup_root``, oldest first."""

    if not backup_root.is_dir():
        return []
    archives = [child for child in backup_root.iterdir() if child.is_file() and is_archive_name(child.name)]
    return sorted(archives, key=lambda path: path.name)


def describe_archives(backup_root: Path) -> list[ArchiveInfo]:
    """Return snapshot archives with their sizes, newest first."""

    return [ArchiveInfo(path=path, size=path.stat().st_size) for path in reversed(list_archives(backup_root))]
