"""Database helpers for Campus Events."""

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import scoped_session, sessionmaker

from .config import settings


def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE / SET NULL unless asked per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sqlite_engine(url: str, **kwargs) -> Engine:
    """Create a thread-shareable SQLite engine that enforces foreign keys."""
    sqlite_engine = create_engine(
        url,
        connect_args={"check_same_thread": False},
        future=True,
        **kwargs,
    )
    event.listen(sqlite_engine, "connect", _enable_foreign_keys)
    return sqlite_engine


def make_session_factory(bind: Engine) -> scoped_session:
    return scoped_session(
        sessionmaker(
            bind=bind,
            autoflush=False,
            autocommit=False,
            future=True,
            expire_on_commit=False,
        )
    )


DATABASE_URL = f"sqlite:///{settings.database_path}"
engine = create_sqlite_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)


@contextmanager
def get_session():
    """Context manager returning a SQLAlchemy session."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
