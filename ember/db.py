from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ember.models import Base

log = logging.getLogger(__name__)

_lock = threading.Lock()
_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None
_seed_demo = True


def make_engine(url: str | Path | None = None) -> Engine:
    """Build an engine for *url*; ``None`` or ``""`` gives a shared in-memory database."""
    if not url:
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    url = str(url)
    if "://" not in url:
        db_path = Path(url)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{db_path}"
    return create_engine(url, connect_args={"check_same_thread": False})


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(url: str | Path | None = None, seed_demo: bool = True) -> None:
    """Construct the process-scoped engine. Calling again replaces it."""
    global _engine, _SessionLocal, _seed_demo
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = make_engine(url)
        Base.metadata.create_all(_engine)
        _SessionLocal = make_session_factory(_engine)
        _seed_demo = seed_demo
        if seed_demo:
            _seed_demo_profiles(_SessionLocal)


def get_session() -> Session:
    with _lock:
        if _SessionLocal is None:
            raise RuntimeError("init_db() has not been called")
        factory = _SessionLocal
    return factory()  # type: ignore[misc]


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Context manager providing a transactional session scope.

    Usage::

        with session_scope() as session:
            ...
    """
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_db() -> None:
    """Drop and recreate every table, re-seeding demo profiles if enabled.

    This is the explicit test-harness reset for the process-scoped store.
    """
    with _lock:
        if _engine is None or _SessionLocal is None:
            raise RuntimeError("init_db() has not been called")
        Base.metadata.drop_all(_engine)
        Base.metadata.create_all(_engine)
        if _seed_demo:
            _seed_demo_profiles(_SessionLocal)


def _seed_demo_profiles(factory: sessionmaker) -> None:
    from ember.identity import seed_demo_profiles

    with factory() as session:
        added = seed_demo_profiles(session)
        session.commit()
    if added:
        log.info("Seeded %d demo profiles", added)
