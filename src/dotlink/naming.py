"""Timestamp and file naming rules for backups."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
FILE_BACKUP_INFIX = ".bak_"
ARCHIVE_PREFIX = "backup-"
ARCHIVE_SUFFIX = ".tar.gz"

_ARCHIVE_RE = re.compile(r"^backup-\d{8}-\d{6}(_\d{2})?\.tar\.gz$")


def timestamp(now: datetime | None = None) -> str:
    """Return a fixed-width, lexicographically sortable timestamp."""

    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def file_backup_name(target: Path, ts: str) -> Path:
    """Return ``<target>.bak_<ts>``."""

    return target.with_name(f"{target.name}{FILE_BACKUP_INFIX}{ts}")


def unique_file_backup_name(target: Path, ts: str) -> Path:
    """Return a per-file backup path for ``target`` that does not exist yet."""

    candidate = file_backup_name(target, ts)
    counter = 0
    while candidate.exists() or candidate.is_symlink():
        counter += 1
        candidate = target.with_name(f"{target.name}{FILE_BACKUP_INFIX}{ts}.{counter}")
    return candidate


def is_file_backup_of(name: str, target_name: str) -> bool:
    """Return ``True`` if ``name`` is a per-file backup of ``target_name``."""

    return name.startswith(f"{target_name}{FILE_BACKUP_INFIX}")


def archive_name(ts: str) -> str:
    """Return the snapshot archive file name for ``ts``."""

    return f"{ARCHIVE_PREFIX}{ts}{ARCHIVE_SUFFIX}"


def is_archive_name(name: str) -> bool:
    return bool(_ARCHIVE_RE.match(name))


def unique_stamp(root: Path, ts: str) -> str:
    """Return ``ts`` or ``ts_NN`` such that neither its staging directory nor
    its archive exists under ``root``.

    ``_`` sorts after ``.`` so a sequenced archive still orders after the bare
    one taken in the same second.
    """

    stamp = ts
    counter = 0
    while (root / stamp).exists() or (root / archive_name(stamp)).exists():
        counter += 1
        if counter > 99:
            raise FileExistsError(f"No free snapshot name left for timestamp {ts} in '{root}'")
        stamp = f"{ts}_{counter:02d}"
    return stamp
