"""TOML configuration loading for dotlink."""

from __future__ import annotations

import getpass
import os
import tomllib
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .retention import DEFAULT_RETENTION_LIMIT

DEFAULT_CONFIG_FILENAME = "dotlink.toml"
DEFAULT_BACKUP_DIRNAME = "_backups"


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed or validated."""


def _expand_path(raw: str | os.PathLike[str] | Path, *, base_dir: Path) -> Path:
    """Return an absolute ``Path`` by expanding env vars and user segments."""

    text = str(raw)
    expanded = Path(os.path.expandvars(text)).expanduser()
    if expanded.is_absolute():
        return expanded.resolve(strict=False)
    return (base_dir / expanded).resolve(strict=False)


def _default_identity() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "default"


class Settings(BaseModel):
    """Everything a dotlink run needs to know about its directories."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_dir: Path | None = None
    target_dir: Path
    backup_root: Path
    identity: str = Field(default_factory=_default_identity, min_length=1)
    retention_limit: int = Field(default=DEFAULT_RETENTION_LIMIT, ge=1)
    exclude: tuple[str, ...] = ()
    dot_prefix: bool = False

    @property
    def snapshot_dir(self) -> Path:
        """Directory holding this identity's snapshot archives."""

        return self.backup_root / self.identity

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, base_dir: Path, require_source: bool = True) -> "Settings":
        data = dict(raw)
        source_raw = data.pop("source_dir", None)
        if source_raw is None and require_source:
            raise ConfigError("No source directory configured. Set 'source_dir' under [settings] or pass --source.")

        source_dir = _expand_path(source_raw, base_dir=base_dir) if source_raw is not None else None
        target_dir = _expand_path(data.pop("target_dir", "~"), base_dir=base_dir)
        backup_raw = data.pop("backup_root", None)
        backup_root = (
            _expand_path(backup_raw, base_dir=base_dir)
            if backup_raw is not None
            else (base_dir / DEFAULT_BACKUP_DIRNAME).resolve(strict=False)
        )

        try:
            return cls(source_dir=source_dir, target_dir=target_dir, backup_root=backup_root, **data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc


class Config(BaseModel):
    """Fully parsed configuration."""

    model_config = ConfigDict(frozen=True)

    config_path: Path | None
    settings: Settings


def load_config(
    path: Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    require_source: bool = True,
) -> Config:
    """Load and validate a configuration file.

    Args:
        path: Optional path to the TOML file or its directory. Defaults to
            ``dotlink.toml`` in the current working directory; when that file
            is absent the settings come from ``overrides`` alone.
        overrides: Setting values taking precedence over the file. ``None``
            values are ignored.
        require_source: Raise ``ConfigError`` when no source directory is
            configured. Commands that only read the backup directory pass
            ``False``.
    """

    config_path = _resolve_config_path(path)
    raw: dict[str, Any] = {}
    if config_path is not None:
        base_dir = config_path.parent
        try:
            with config_path.open("rb") as handle:
                data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Configuration file '{config_path}' is not valid TOML: {exc}") from exc
        settings_section = data.get("settings") or {}
        if not isinstance(settings_section, dict):
            raise ConfigError("The [settings] entry must be a table")
        raw.update(settings_section)
    else:
        base_dir = Path.cwd()

    raw.update({key: value for key, value in (overrides or {}).items() if value is not None})
    settings = Settings.from_raw(raw, base_dir=base_dir, require_source=require_source)

    return Config(config_path=config_path, settings=settings)


def _resolve_config_path(path: Path | None) -> Path | None:
    if path is None:
        candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
        return candidate.resolve(strict=False) if candidate.is_file() else None

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' does not exist")
    if path.is_dir():
        candidate = path / DEFAULT_CONFIG_FILENAME
        if not candidate.exists():
            raise ConfigError(f"Expected to find '{DEFAULT_CONFIG_FILENAME}' inside '{path}', but none was located")
        path = candidate

    return path.resolve(strict=False)
