"""Tests for the engine and session factory the worker opens per job."""

import pytest
from sqlalchemy.orm import Session

from inventory_import.core.config import get_settings
from inventory_import.db import session as db_session_module


@pytest.fixture
def sqlite_settings(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    caches = (get_settings, db_session_module.get_engine, db_session_module.get_session_factory)
    for cached in caches:
        cached.cache_clear()
    yield
    for cached in caches:
        cached.cache_clear()


def test_session_local_opens_independent_sessions_on_one_engine(sqlite_settings) -> None:
    first = db_session_module.SessionLocal()
    second = db_session_module.SessionLocal()

    assert isinstance(first, Session)
    assert first is not second
    assert first.get_bind() is second.get_bind() is db_session_module.get_engine()
    assert str(first.get_bind().url) == "sqlite://"
    first.close()
    second.close()


def test_session_module_exposes_only_worker_entry_points() -> None:
    assert not hasattr(db_session_module, "get_db")
    assert callable(db_session_module.SessionLocal)


def test_keepalive_settings_apply_to_postgresql_only() -> None:
    engine = db_session_module.build_engine("sqlite://")

    assert engine.pool._pre_ping is False
    engine.dispose()
