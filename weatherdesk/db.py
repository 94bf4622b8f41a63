"""
Database configuration for SQLAlchemy + SQLite.

Preferences and saved lists live in one small SQLite file next to the app.
Tests pass "sqlite://" to get a private in-memory database.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Base class for ORM models."""
    pass


def database_url(sqlite_path: str) -> str:
    if sqlite_path in ("", ":memory:"):
        return "sqlite://"
    return f"sqlite:///{sqlite_path}"


def build_engine(url: str) -> Engine:
    # The interactive loop and worker threads may both touch the store.
    connect_args = {"check_same_thread": False}
    if url == "sqlite://":
        # One shared connection, otherwise every session sees an empty database
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Create tables if missing and return a session factory bound to engine."""
    from . import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
