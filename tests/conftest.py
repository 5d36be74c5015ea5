"""
Shared fixtures: a temp SQLite store and a temp config file.
"""

import pytest
import yaml

from switchboard import config as cfg_mod
from switchboard.storage.sqlite_store import SQLiteStore


@pytest.fixture
def store(tmp_path):
    """Create a fresh SQLite store for each test."""
    return SQLiteStore(str(tmp_path / "test.db"))


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point switchboard at a throwaway config.yaml + database."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "storage": {"sqlite_path": str(tmp_path / "app.db")},
        "dispatch": {"timeout": 5},
        "logging": {"level": "WARNING"},
    }))
    monkeypatch.setenv("SWITCHBOARD_CONFIG", str(path))
    cfg_mod.reset_config()
    yield path
    cfg_mod.reset_config()
