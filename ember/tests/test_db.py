"""Tests for the process-scoped store lifecycle and settings."""
from __future__ import annotations

import pytest
from sqlalchemy import select

from ember import db
from ember.config import Settings
from ember.models import Profile


@pytest.fixture()
def fresh_db(monkeypatch):
    monkeypatch.setattr(db, "_engine", None)
    monkeypatch.setattr(db, "_SessionLocal", None)
    yield db
    if db._engine is not None:
        db._engine.dispose()


class TestLifecycle:
    def test_get_session_before_init(self, fresh_db):
        with pytest.raises(RuntimeError):
            fresh_db.get_session()

    def test_init_seeds_demo_profiles(self, fresh_db):
        fresh_db.init_db(None, seed_demo=True)
        with fresh_db.session_scope() as session:
            emails = sorted(session.execute(select(Profile.email)).scalars().all())
        assert emails == ["founder@test.com", "funder@test.com"]

    def test_init_without_seed(self, fresh_db):
        fresh_db.init_db(None, seed_demo=False)
        with fresh_db.session_scope() as session:
            assert session.execute(select(Profile)).first() is None

    def test_reset_restores_seed_state(self, fresh_db):
        fresh_db.init_db(None, seed_demo=True)
        with fresh_db.session_scope() as session:
            session.add(Profile(uid="x", email="x@x.com", role="Founder"))
            session.commit()
        fresh_db.reset_db()
        with fresh_db.session_scope() as session:
            uids = sorted(session.execute(select(Profile.uid)).scalars().all())
        assert uids == ["1", "2"]

    def test_file_database(self, fresh_db, tmp_path):
        path = tmp_path / "nested" / "ember.db"
        fresh_db.init_db(path, seed_demo=True)
        assert path.exists()

    def test_session_scope_rolls_back(self, fresh_db):
        fresh_db.init_db(None, seed_demo=False)
        with pytest.raises(RuntimeError):
            with fresh_db.session_scope() as session:
                session.add(Profile(uid="x", email="x@x.com", role="Founder"))
                session.flush()
                raise RuntimeError("abort")
        with fresh_db.session_scope() as session:
            assert session.get(Profile, "x") is None


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("EMBER_DATABASE_URL", "EMBER_SEED_DEMO", "EMBER_PORT"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings()
        assert settings.database_url == ""
        assert settings.seed_demo is True
        assert settings.port == 8001

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("EMBER_DATABASE_URL", "sqlite:///x.db")
        monkeypatch.setenv("EMBER_SEED_DEMO", "no")
        monkeypatch.setenv("EMBER_STORAGE_PATH", str(tmp_path / "ls.json"))
        settings = Settings()
        assert settings.database_url == "sqlite:///x.db"
        assert settings.seed_demo is False
        assert settings.storage_path == tmp_path / "ls.json"
