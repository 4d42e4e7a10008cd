from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from dotlink.config import DEFAULT_CONFIG_FILENAME, ConfigError, load_config


def _write_config(tmp_path: Path, body: str) -> Path:
    config_path = tmp_path / DEFAULT_CONFIG_FILENAME
    config_path.write_text(dedent(body))
    return config_path


def test_load_config_happy_path(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
        [settings]
        source_dir = "./home-files"
        target_dir = "~"
        identity = "alice"
        retention_limit = 3
        exclude = ["README.md", ".gitignore"]
        """,
    )

    config = load_config(config_path)
    settings = config.settings

    assert config.config_path == config_path.resolve(strict=False)
    assert settings.source_dir == (tmp_path / "home-files").resolve(strict=False)
    assert settings.target_dir == fake_home.resolve(strict=False)
    assert settings.backup_root == (tmp_path / "_backups").resolve(strict=False)
    assert settings.snapshot_dir == settings.backup_root / "alice"
    assert settings.retention_limit == 3
    assert settings.exclude == ("README.md", ".gitignore")
    assert settings.dot_prefix is False


def test_defaults_and_overrides(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
        [settings]
        source_dir = "./files"
        backup_root = "~/backups"
        """,
    )

    config = load_config(config_path, overrides={"retention_limit": 9, "target_dir": None})

    assert config.settings.retention_limit == 9
    assert config.settings.target_dir == fake_home.resolve(strict=False)
    assert config.settings.backup_root == (fake_home / "backups").resolve(strict=False)


def test_without_config_file_uses_overrides(
    tmp_path: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    source = tmp_path / "src"

    config = load_config(None, overrides={"source_dir": str(source)})

    assert config.config_path is None
    assert config.settings.source_dir == source.resolve(strict=False)
    assert config.settings.backup_root == (tmp_path / "_backups").resolve(strict=False)


def test_missing_source_dir_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigError, match="No source directory"):
        load_config(None)


@pytest.mark.parametrize(
    "body",
    [
        '[settings]\nsource_dir = "./s"\nretention_limit = 0\n',
        '[settings]\nsource_dir = "./s"\nunknown_key = true\n',
        '[settings\nsource_dir = "./s"\n',
        'settings = "flat"\n',
    ],
)
def test_invalid_settings_rejected(tmp_path: Path, body: str) -> None:
    config_path = tmp_path / DEFAULT_CONFIG_FILENAME
    config_path.write_text(body)

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_missing_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "absent.toml")


def test_directory_argument_resolves_default_file(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    _write_config(
        config_dir,
        """
        [settings]
        source_dir = "./base"
        """,
    )

    config = load_config(config_dir)

    assert config.config_path == (config_dir / DEFAULT_CONFIG_FILENAME).resolve(strict=False)
    assert config.settings.source_dir == (config_dir / "base").resolve(strict=False)


def test_source_dir_optional_when_not_required(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config(None, overrides={"backup_root": "./archives", "identity": "bob"}, require_source=False)

    assert config.settings.source_dir is None
    assert config.settings.snapshot_dir == (tmp_path / "archives" / "bob").resolve(strict=False)
