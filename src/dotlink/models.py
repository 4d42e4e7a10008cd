"""Shared models and enums for dotlink."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass(frozen=True, slots=True)
class FileInfo:
    """Structured metadata about a candidate entry in the source directory."""

    name: str
    path: Path
    is_dir: bool
    is_symlink: bool


@dataclass(frozen=True, slots=True)
class ManagedItem:
    """A single file deployed from the repository as a symlink."""

    name: str
    source_path: Path
    target_path: Path


class LinkState(str, Enum):
    """Current state of a managed item's target path."""

    ABSENT = "missing"
    CORRECT_LINK = "ok"
    WRONG_LINK = "wrong_link"
    BLOCKED = "blocked"


class LinkAction(str, Enum):
    """Outcome of deploying a single item."""

    LINKED = "linked"
    RELINKED = "relinked"
    BACKED_UP = "backed_up"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class DeployResult:
    """Result emitted when reconciling an item."""

    item: ManagedItem
    action: LinkAction
    backup: Path | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class DeployReport:
    """Aggregate of a deploy run."""

    results: tuple[DeployResult, ...]

    def _count(self, *actions: LinkAction) -> int:
        return sum(1 for result in self.results if result.action in actions)

    @property
    def linked(self) -> int:
        return self._count(LinkAction.LINKED, LinkAction.RELINKED, LinkAction.BACKED_UP)

    @property
    def backed_up(self) -> int:
        return self._count(LinkAction.BACKED_UP)

    @property
    def unchanged(self) -> int:
        return self._count(LinkAction.UNCHANGED)

    @property
    def skipped(self) -> int:
        return self._count(LinkAction.SKIPPED)


class RemoveAction(str, Enum):
    """Outcome of removing a single item's link."""

    UNLINKED = "unlinked"
    NOT_LINK = "not_link"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RemoveResult:
    """Result emitted when removing an item's link and backups."""

    item: ManagedItem
    action: RemoveAction
    removed_backups: tuple[Path, ...] = ()
    stray_backups: tuple[Path, ...] = ()
    error: str | None = None


@dataclass(frozen=True, slots=True)
class RemoveReport:
    """Aggregate of a remove run."""

    results: tuple[RemoveResult, ...]

    @property
    def links_removed(self) -> int:
        return sum(1 for result in self.results if result.action is RemoveAction.UNLINKED)

    @property
    def backups_removed(self) -> int:
        return sum(len(result.removed_backups) for result in self.results)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if result.error is not None)

    @property
    def stray_backups(self) -> tuple[Path, ...]:
        return tuple(path for result in self.results for path in result.stray_backups)


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """Status information for a managed item."""

    item: ManagedItem
    state: LinkState
    details: str | None = None


@dataclass(frozen=True, slots=True)
class StatusReport:
    """Collection of status results for a manager run."""

    entries: tuple[StatusEntry, ...]

    @property
    def ok(self) -> int:
        return sum(1 for entry in self.entries if entry.state is LinkState.CORRECT_LINK)

    @property
    def errors(self) -> int:
        return len(self.entries) - self.ok

    @property
    def details(self) -> list[tuple[str, LinkState]]:
        return [(entry.item.name, entry.state) for entry in self.entries]


class SnapshotOutcome(str, Enum):
    """Whether a snapshot pass produced an archive."""

    CREATED = "created"
    EMPTY = "empty"


@dataclass(frozen=True, slots=True)
class SnapshotResult:
    """Result of a snapshot pass."""

    outcome: SnapshotOutcome
    archive: Path | None = None
    file_count: int = 0
    size: int = 0


@dataclass(frozen=True, slots=True)
class RetentionResult:
    """Archives pruned (or not) by a retention pass."""

    removed: tuple[Path, ...] = ()
    failed: tuple[tuple[Path, str], ...] = ()


@dataclass(frozen=True, slots=True)
class BackupReport:
    """Combined snapshot and retention outcome for the ``backup`` verb."""

    snapshot: SnapshotResult
    retention: RetentionResult = field(default_factory=RetentionResult)


@dataclass(frozen=True, slots=True)
class ArchiveInfo:
    """An existing snapshot archive."""

    path: Path
    size: int
