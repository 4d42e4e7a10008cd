"""Filesystem helpers for dotlink."""

from __future__ import annotations

import os
import secrets
import shutil
from pathlib import Path
from typing import Iterable

from .errors import DotlinkError
from .models import FileInfo, LinkState, ManagedItem

BACKUP_MARKER = ".bak"


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def classify(target: Path, expected_source: Path | str) -> LinkState:
    """Return the ``LinkState`` of ``target`` relative to ``expected_source``.

    Symlinks are compared by their literal one-hop target, never by what they
    resolve to, so a link reaching the same file through another path is still
    ``WRONG_LINK``.
    """

    if target.is_symlink():
        if os.readlink(target) == str(expected_source):
            return LinkState.CORRECT_LINK
        return LinkState.WRONG_LINK
    if target.exists():
        return LinkState.BLOCKED
    return LinkState.ABSENT


def file_info(path: Path) -> FileInfo:
    """Collect the metadata the inclusion predicate needs for ``path``."""

    return FileInfo(name=path.name, path=path, is_dir=path.is_dir(), is_symlink=path.is_symlink())


def is_manageable(info: FileInfo, *, exclude: Iterable[str] = ()) -> bool:
    """Return ``True`` if ``info`` describes a deployable source file.

    Directories, dangling links, backup files and explicitly excluded names
    are never managed.
    """

    if info.is_dir:
        return False
    if BACKUP_MARKER in info.name:
        return False
    if info.name in set(exclude):
        return False
    if info.is_symlink and not info.path.exists():
        return False
    return True


def target_name(name: str, *, dot_prefix: bool = False) -> str:
    """Return the file name used under the target directory for ``name``."""

    if dot_prefix and not name.startswith("."):
        return f".{name}"
    return name


def discover_items(
    source_dir: Path,
    target_dir: Path,
    *,
    exclude: Iterable[str] = (),
    dot_prefix: bool = False,
) -> list[ManagedItem]:
    """Scan ``source_dir`` and return the managed set, sorted by name.

    Raises ``DotlinkError`` when two source files map to the same target.
    """

    source_dir = Path(os.path.abspath(source_dir))
    target_dir = Path(os.path.abspath(target_dir))
    excluded = tuple(exclude)

    items: list[ManagedItem] = []
    claimed: dict[str, str] = {}
    for child in sorted(source_dir.iterdir()):
        if not is_manageable(file_info(child), exclude=excluded):
            continue
        name = target_name(child.name, dot_prefix=dot_prefix)
        if name in claimed:
            raise DotlinkError(
                f"Source files '{claimed[name]}' and '{child.name}' would both be linked as '{target_dir / name}'"
            )
        claimed[name] = child.name
        items.append(ManagedItem(name=child.name, source_path=child, target_path=target_dir / name))
    return items


def replace_symlink(link: Path, target: Path | str) -> None:
    """Atomically point ``link`` at ``target``.

    A temporary link is created beside ``link`` and renamed over it, so an
    interrupted call leaves either the old entry or the new link in place.
    ``link`` must not be a directory.
    """

    ensure_parent(link)
    temp_link = link.parent / f".{link.name}.dotlink-tmp-{secrets.token_hex(4)}"
    temp_link.symlink_to(target)
    try:
        os.replace(temp_link, link)
    except Exception:
        temp_link.unlink(missing_ok=True)
        raise


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink."""

    if not path.exists() and not path.is_symlink():
        return
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    shutil.rmtree(path)
