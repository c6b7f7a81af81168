from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ember.models import Base
from ember.schedule import LocalStorage
from ember.services import build_services


class FakeClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 6, 1, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.now
        self.now += timedelta(seconds=1)
        return value


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def ember(session_factory, clock):
    return build_services(session_factory, storage=LocalStorage(), clock=clock)


@pytest.fixture()
def founder(ember):
    return ember.identity.create_profile(
        "f@x.com", "Founder", full_name="Frida Founder", industry="AI", funding_stage="Seed",
    )


@pytest.fixture()
def funder(ember):
    return ember.identity.create_profile(
        "g@x.com", "Funder", full_name="Gus Funder", preferred_stage="Series A",
    )
