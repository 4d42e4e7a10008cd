"""Core package for the dotlink project."""

from .cli import app, run
from .config import Config, ConfigError, Settings, load_config
from .errors import DotlinkError, SnapshotError
from .manager import DotlinkManager
from .models import (
    BackupReport,
    DeployReport,
    DeployResult,
    LinkAction,
    LinkState,
    ManagedItem,
    RemoveAction,
    RemoveReport,
    RemoveResult,
    SnapshotOutcome,
    SnapshotResult,
    StatusEntry,
    StatusReport,
)

__all__ = [
    "Config",
    "ConfigError",
    "Settings",
    "load_config",
    "DotlinkManager",
    "DotlinkError",
    "SnapshotError",
    "BackupReport",
    "DeployReport",
    "DeployResult",
    "LinkAction",
    "LinkState",
    "ManagedItem",
    "RemoveAction",
    "RemoveReport",
    "RemoveResult",
    "SnapshotOutcome",
    "SnapshotResult",
    "StatusEntry",
    "StatusReport",
    "app",
    "run",
]
