from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest

from dotlink.config import Settings


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    return home


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    source = tmp_path / "repo" / "home"
    source.mkdir(parents=True)
    return source


@pytest.fixture
def make_settings(tmp_path: Path, fake_home: Path, repo: Path) -> Callable[..., Settings]:
    def _make(**raw: Any) -> Settings:
        data: dict[str, Any] = {
            "source_dir": str(repo),
            "target_dir": str(fake_home),
            "backup_root": str(tmp_path / "backups"),
            "identity": "tester",
        }
        data.update(raw)
        return Settings.from_raw(data, base_dir=tmp_path)

    return _make
