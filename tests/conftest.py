from __future__ import annotations

import pytest

import auth
import db
from repository import SqliteRepository

ADMIN_EMAIL = "admin@gym.local"
ADMIN_PASSWORD = "admin12345"


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Fresh SQLite database with the default admin seeded."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "gym.db")
    db.init_db(ADMIN_EMAIL, auth.hash_password(ADMIN_PASSWORD))
    return tmp_path / "gym.db"


@pytest.fixture
def sqlite_repo(temp_db) -> SqliteRepository:
    return SqliteRepository()
