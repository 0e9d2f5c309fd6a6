"""
Shared fixtures: a fresh SQLite database per test and fixed timestamps.
"""

from datetime import datetime, timedelta

import pytest

from db import Database
from domain.entry_service import EntryService
from settings import clear_settings_cache

T0 = datetime(2024, 1, 1, 12, 0, 0)


def at(minutes: int = 0) -> datetime:
    """Deterministic timestamp, `minutes` after T0."""
    return T0 + timedelta(minutes=minutes)


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / 'entries.db'))
    yield database
    database.dispose()


@pytest.fixture
def service(db):
    return EntryService(db)


@pytest.fixture
def session(db):
    s = db.get_session()
    yield s
    s.close()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at temporary databases and entries directory."""
    monkeypatch.setenv('ENTRIES_DB_PATH', str(tmp_path / 'entries.db'))
    monkeypatch.setenv('ENTRIES_LOG_DB_PATH', str(tmp_path / 'entries_logs.db'))
    monkeypatch.setenv('ENTRIES_ROOT', str(tmp_path / 'root'))
    clear_settings_cache()
    yield tmp_path
    clear_settings_cache()
