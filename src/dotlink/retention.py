"""Bounded retention of snapshot archives."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from .models import RetentionResult
from .snapshot import list_archives

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_LIMIT = 5


def select_expired(archives: Sequence[Path], limit: int) -> list[Path]:
    """Return the archives to delete so that at most ``limit`` remain.

    ``archives`` must be sorted oldest first.
    """

    if limit < 0:
        raise ValueError("Retention limit must not be negative")
    if len(archives) <= limit:
        return []
    return list(archives[: len(archives) - limit])


def prune(backup_root: Path, limit: int = DEFAULT_RETENTION_LIMIT) -> RetentionResult:
    """Delete the oldest archives under ``backup_root`` beyond ``limit``.

    Each deletion is attempted independently; failures are logged and reported
    without stopping the pass.
    """

    expired = select_expired(list_archives(backup_root), limit)
    if not expired:
        return RetentionResult()

    logger.info("Pruning %d old snapshot(s) in %s (keeping last %d)", len(expired), backup_root, limit)
    removed: list[Path] = []
    failed: list[tuple[Path, str]] = []
    for archive in expired:
        try:
            archive.unlink()
        except OSError as exc:
            logger.warning("Failed to remove %s: %s", archive.name, exc)
            failed.append((archive, str(exc)))
            continue
        logger.info("Removed %s", archive.name)
        removed.append(archive)

    return RetentionResult(removed=tuple(removed), failed=tuple(failed))
