"""
SQLAlchemy wiring shared by the API and the admin CLI.

Engine and sessionmaker are built lazily from DATABASE_URL so importing
this module never opens a connection.
"""

import functools
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from basecore.settings import get_settings

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for a URL.

    SQLite connections are shared across the request thread pool, so the
    same-thread check is disabled for them.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=False,
        connect_args=connect_args,
    )


@functools.lru_cache()
def get_engine() -> Engine:
    """Engine for the configured DATABASE_URL (cached)."""
    return build_engine(get_settings().DATABASE_URL)


@functools.lru_cache()
def get_sessionmaker() -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request, closed afterwards."""
    db: Session = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Session for scripts and CLI commands.

    Rolls back on error; callers commit explicitly.
    """
    db: Session = get_sessionmaker()()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
