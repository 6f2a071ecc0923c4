from __future__ import annotations

import pytest


@pytest.fixture
def db(tmp_path, monkeypatch):
    """Fresh SQLite database per test, wired through the normal settings path."""
    import core.db as db_mod
    from core.config import get_settings

    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("APP_ENV", "test")
    get_settings.cache_clear()
    db_mod.reset_engine()
    db_mod.create_schema()
    yield db_mod
    db_mod.reset_engine()
    get_settings.cache_clear()
