"""Shared pytest fixtures for Campus Events."""

from __future__ import annotations

import os
import sys
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep uploaded media and the default database file out of the working tree.
os.environ.setdefault(
    "CAMPUSEVENTS_DATA_DIR", tempfile.mkdtemp(prefix="campusevents-tests-")
)

from campusevents import api, database, schema
from campusevents.crud import create_event, create_profile
from campusevents.models import Base
from campusevents.utils import utcnow


@pytest.fixture(scope="session", autouse=True)
def configure_in_memory_db():
    """Reuse a single in-memory SQLite database for fast, isolated tests."""

    engine = database.create_sqlite_engine(
        "sqlite+pysqlite:///:memory:", poolclass=StaticPool
    )
    session_factory = database.make_session_factory(engine)
    database.engine = engine
    database.SessionLocal = session_factory
    schema.engine = engine
    api.SessionLocal = session_factory
    Base.metadata.create_all(bind=engine)
    yield
    session_factory.remove()


@pytest.fixture(autouse=True)
def clean_database():
    """Reset all tables between tests to guarantee isolation."""

    Base.metadata.drop_all(bind=database.engine)
    Base.metadata.create_all(bind=database.engine)
    yield


@pytest.fixture()
def session():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client():
    with TestClient(api.app) as test_client:
        yield test_client


@pytest.fixture()
def admin(session):
    profile = create_profile(
        session, full_name="Ada Admin", email="ada@campus.edu", role="admin"
    )
    session.commit()
    return profile


@pytest.fixture()
def member(session):
    profile = create_profile(
        session, full_name="Sam Student", email="sam@campus.edu", role="user"
    )
    session.commit()
    return profile


@pytest.fixture()
def make_event(session, admin):
    """Factory for committed events organized by the admin profile."""

    def _make(
        *,
        title: str = "Campus Talk",
        description: str = "An evening talk",
        location: str = "Main Hall",
        start=None,
        end=None,
        max_attendees: int | None = None,
        category_id: str | None = None,
        tags: list[str] | None = None,
    ):
        start_time = start or utcnow().replace(microsecond=0) + timedelta(days=1)
        end_time = end or start_time + timedelta(hours=2)
        event = create_event(
            session,
            title=title,
            description=description,
            start_time=start_time,
            end_time=end_time,
            location=location,
            organizer_id=admin.user_id,
            max_attendees=max_attendees,
            tags=tags,
            category_id=category_id,
        )
        session.commit()
        return event

    return _make
