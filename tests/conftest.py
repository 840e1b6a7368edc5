# tests/conftest.py
import itertools
import os
import tempfile
from datetime import date, datetime, time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.admission import AdmissionEngine
from app.auth import Actor
from app.catalog import SessionCatalog
from app.clock import FrozenClock, get_clock
from app.db import Base, get_db, make_engine
from app.locks import SessionLocks
from app.main import app
from app.models import GymSession, MembershipLevel, User

# Monday 2 June 2025, 08:00
NOW = datetime(2025, 6, 2, 8, 0)


def as_time(value):
    return time.fromisoformat(value) if isinstance(value, str) else value


def as_date(value):
    return date.fromisoformat(value) if isinstance(value, str) else value


@pytest.fixture(scope="function")
def db_engine():
    os.environ["SKIP_DB_INIT"] = "1"

    # temp DB file so that threads with their own connections see the same data
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    engine = make_engine(f"sqlite:///{tmp.name}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()
        os.unlink(tmp.name)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def test_db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def locks():
    return SessionLocks()


@pytest.fixture
def engine(test_db_session, clock, locks):
    return AdmissionEngine(test_db_session, clock, locks=locks)


@pytest.fixture
def catalog(test_db_session, clock, locks):
    return SessionCatalog(test_db_session, clock, locks=locks)


@pytest.fixture(scope="function")
def client(test_db_session, clock):
    def override_get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# —— Factories ——
@pytest.fixture
def make_level(test_db_session):
    counter = itertools.count(1)

    def _make_level(name=None, weekly_limit=None, priority=0, default_duration_days=None):
        level = MembershipLevel(
            name=name or f"Level {next(counter)}",
            weekly_limit=weekly_limit,
            priority=priority,
            default_duration_days=default_duration_days,
        )
        test_db_session.add(level)
        test_db_session.commit()
        return level
    return _make_level


@pytest.fixture
def make_user(test_db_session):
    counter = itertools.count(1)

    def _make_user(level=None, role="user", expires_at=None, name=None):
        n = next(counter)
        u = User(
            name=name or f"User {n}",
            email=f"user{n}@example.com",
            role=role,
            membership_level_id=level.id if level is not None else None,
            subscription_expires_at=expires_at,
        )
        test_db_session.add(u)
        test_db_session.commit()
        return u
    return _make_user


@pytest.fixture
def make_session(test_db_session):
    def _make_session(name="Spin", day="2025-06-04", start="09:00", end="10:00", capacity=10):
        s = GymSession(
            name=name,
            date=as_date(day),
            start_time=as_time(start),
            end_time=as_time(end),
            capacity=capacity,
        )
        test_db_session.add(s)
        test_db_session.commit()
        return s
    return _make_session


@pytest.fixture
def staff(make_user):
    u = make_user(role="staff", name="Staff")
    return Actor(user_id=u.id, role=u.role)


@pytest.fixture
def admin(make_user):
    u = make_user(role="admin", name="Admin")
    return Actor(user_id=u.id, role=u.role)


def member(user):
    return Actor(user_id=user.id, role=user.role)


def headers(user_or_actor):
    user_id = getattr(user_or_actor, "user_id", None) or user_or_actor.id
    return {"X-User-Id": str(user_id)}
