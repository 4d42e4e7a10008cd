"""High level orchestration for dotlink operations."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .config import Settings
from .errors import DotlinkError
from .filesystem import classify, discover_items, remove_path, replace_symlink
from .models import (
    ArchiveInfo,
    BackupReport,
    DeployReport,
    DeployResult,
    LinkAction,
    LinkState,
    ManagedItem,
    RemoveAction,
    RemoveReport,
    RemoveResult,
    StatusEntry,
    StatusReport,
)
from .naming import is_file_backup_of, timestamp, unique_file_backup_name
from .retention import prune
from .snapshot import create_snapshot, describe_archives

logger = logging.getLogger(__name__)

_ACTION_FOR_STATE = {
    LinkState.ABSENT: LinkAction.LINKED,
    LinkState.WRONG_LINK: LinkAction.RELINKED,
    LinkState.BLOCKED: LinkAction.BACKED_UP,
}


class DotlinkManager:
    """Reconciles the repository's files against the target directory.

    Every public operation recomputes the managed set from the source
    directory. Failures affecting a single item are recorded in that item's
    result; only failures that prevent any work from starting raise
    ``DotlinkError``.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def items(self) -> list[ManagedItem]:
        source_dir = self.settings.source_dir
        if source_dir is None:
            raise DotlinkError("No source directory configured. Set 'source_dir' under [settings] or pass --source.")
        if not source_dir.is_dir():
            raise DotlinkError(f"Source directory '{source_dir}' does not exist or is not a directory")
        try:
            return discover_items(
                source_dir,
                self.settings.target_dir,
                exclude=self.settings.exclude,
                dot_prefix=self.settings.dot_prefix,
            )
        except OSError as exc:
            raise DotlinkError(f"Unable to scan source directory '{source_dir}': {exc}") from exc

    def deploy(self, ts: str | None = None) -> DeployReport:
        ts = ts or timestamp()
        items = self.items()
        target_dir = self.settings.target_dir
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DotlinkError(f"Cannot create target directory '{target_dir}': {exc}") from exc

        return DeployReport(results=tuple(self._deploy_item(item, ts) for item in items))

    def status(self) -> StatusReport:
        return StatusReport(entries=tuple(self._status_for_item(item) for item in self.items()))

    def remove(self, *, remove_backups: bool = False) -> RemoveReport:
        return RemoveReport(results=tuple(self._remove_item(item, remove_backups) for item in self.items()))

    def backup(self, ts: str | None = None) -> BackupReport:
        ts = ts or timestamp()
        items = self.items()
        snapshot_dir = self.settings.snapshot_dir
        try:
            snapshot_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DotlinkError(f"Cannot create backup directory '{snapshot_dir}': {exc}") from exc

        snapshot = create_snapshot(items, snapshot_dir, ts)
        retention = prune(snapshot_dir, self.settings.retention_limit)
        return BackupReport(snapshot=snapshot, retention=retention)

    def snapshots(self) -> list[ArchiveInfo]:
        return describe_archives(self.settings.snapshot_dir)

    # ------------------------------------------------------------------
    # Internal helpers

    def _deploy_item(self, item: ManagedItem, ts: str) -> DeployResult:
        if not item.source_path.exists():
            return self._skip(item, f"Source '{item.source_path}' no longer exists")

        try:
            state = classify(item.target_path, item.source_path)
        except OSError as exc:
            return self._skip(item, f"Unable to inspect '{item.target_path}': {exc}")

        if state is LinkState.CORRECT_LINK:
            logger.debug("%s already links to %s", item.target_path, item.source_path)
            return DeployResult(item=item, action=LinkAction.UNCHANGED)

        backup: Path | None = None
        if state is LinkState.BLOCKED:
            try:
                backup = unique_file_backup_name(item.target_path, ts)
                item.target_path.rename(backup)
            except OSError as exc:
                return self._skip(item, f"Unable to back up '{item.target_path}': {exc}")
            logger.info("Backed up %s to %s", item.target_path, backup.name)

        try:
            replace_symlink(item.target_path, item.source_path)
        except OSError as exc:
            return self._skip(item, f"Unable to link '{item.target_path}': {exc}", backup=backup)

        logger.info("Linked %s -> %s", item.target_path, item.source_path)
        return DeployResult(item=item, action=_ACTION_FOR_STATE[state], backup=backup)

    def _skip(self, item: ManagedItem, message: str, *, backup: Path | None = None) -> DeployResult:
        logger.warning("Skipping %s: %s", item.name, message)
        return DeployResult(item=item, action=LinkAction.SKIPPED, backup=backup, error=message)

    def _status_for_item(self, item: ManagedItem) -> StatusEntry:
        target = item.target_path
        try:
            state = classify(target, item.source_path)
            if state is LinkState.CORRECT_LINK:
                details = f"-> {item.source_path}"
            elif state is LinkState.WRONG_LINK:
                details = f"points to {os.readlink(target)}"
            elif state is LinkState.BLOCKED:
                kind = "directory" if target.is_dir() else "file"
                details = f"existing {kind} is not a symlink"
            else:
                details = "link does not exist"
        except OSError as exc:
            return StatusEntry(item=item, state=LinkState.BLOCKED, details=f"Unable to inspect: {exc}")
        return StatusEntry(item=item, state=state, details=details)

    def _remove_item(self, item: ManagedItem, remove_backups: bool) -> RemoveResult:
        target = item.target_path
        try:
            if target.is_symlink():
                target.unlink()
                action = RemoveAction.UNLINKED
                logger.info("Removed link %s", target)
            elif target.exists():
                action = RemoveAction.NOT_LINK
            else:
                action = RemoveAction.ABSENT
        except OSError as exc:
            logger.warning("Unable to remove %s: %s", target, exc)
            return RemoveResult(item=item, action=RemoveAction.FAILED, error=str(exc))

        try:
            backups = _find_backups(target)
        except OSError as exc:
            logger.warning("Unable to list backups of %s: %s", target, exc)
            return RemoveResult(item=item, action=action, error=f"Unable to list backups: {exc}")

        if not remove_backups:
            return RemoveResult(item=item, action=action, stray_backups=tuple(backups))

        removed: list[Path] = []
        remaining: list[Path] = []
        for backup in backups:
            try:
                remove_path(backup)
            except OSError as exc:
                logger.warning("Unable to remove backup %s: %s", backup, exc)
                remaining.append(backup)
                continue
            logger.info("Removed backup %s", backup)
            removed.append(backup)

        error = f"{len(remaining)} backup(s) could not be removed" if remaining else None
        return RemoveResult(
            item=item,
            action=action,
            removed_backups=tuple(removed),
            stray_backups=tuple(remaining),
            error=error,
        )


def _find_backups(target: Path) -> list[Path]:
    parent = target.parent
    if not parent.is_dir():
        return []
    return sorted(child for child in parent.iterdir() if is_file_backup_of(child.name, target.name))
