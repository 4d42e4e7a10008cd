"""Exceptions raised by dotlink."""

from __future__ import annotations


class DotlinkError(RuntimeError):
    """Raised when dotlink encounters an unrecoverable state."""


class SnapshotError(DotlinkError):
    """Raised when a snapshot archive cannot be produced."""
