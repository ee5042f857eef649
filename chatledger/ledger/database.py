"""Database configuration helpers for the ledger store."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chatledger.config import DATABASE_URL

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _prepare_sqlite_path(url: URL) -> None:
    """Ensure on-disk SQLite paths exist before engine creation."""
    database = url.database
    if not database or database == ":memory:":
        return

    db_path = Path(database)
    if not db_path.is_absolute():
        db_path = (Path.cwd() / db_path).resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)


def create_ledger_engine(database_url: str) -> Engine:
    parsed_url = make_url(database_url)
    if not parsed_url.drivername.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    connect_args = {"check_same_thread": False}
    if not parsed_url.database or parsed_url.database == ":memory:":
        # One shared connection, otherwise every session sees an empty database
        return create_engine(database_url, connect_args=connect_args, poolclass=StaticPool)

    _prepare_sqlite_path(parsed_url)
    return create_engine(database_url, connect_args=connect_args)


def get_engine() -> Engine:
    """Create (or return) the global SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_ledger_engine(DATABASE_URL)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )
    return _session_factory


def init_db(engine: Engine | None = None) -> None:
    """Create tables if they are missing."""
    from chatledger.ledger import models

    models.Base.metadata.create_all(bind=engine or get_engine())
