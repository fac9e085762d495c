"""Database configuration and base setup for Content Hub."""

import os
from typing import Generator, Optional

import structlog
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# Default to a local SQLite database when DATABASE_URL is not provided.
DEFAULT_DATABASE_URL = "sqlite:///./content_hub.db"


def _ensure_sync_driver(url: URL) -> URL:
    """Force a synchronous driver for Alembic and the ORM engine."""

    if url.drivername.startswith("postgresql+"):
        # Normalize any async driver variants to psycopg (sync)
        if any(token in url.drivername for token in ("async", "aiopg")):
            url = url.set(drivername="postgresql+psycopg")
    elif url.drivername.startswith("sqlite+"):
        # Align async SQLite drivers to the synchronous default
        if "aiosqlite" in url.drivername:
            url = url.set(drivername="sqlite")

    return url


def get_database_url(raw_url: Optional[str] = None) -> str:
    """Return a database URL with a guaranteed synchronous driver."""

    url = make_url(raw_url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL)
    # render_as_string(hide_password=False) keeps the real password;
    # str(url) would mask it with ***
    return _ensure_sync_driver(url).render_as_string(hide_password=False)


def _enable_sqlite_transactional_ddl(engine: Engine) -> None:
    """Let CREATE/ALTER TABLE take part in the surrounding transaction.

    pysqlite only opens a transaction before DML, so DDL issued first would
    autocommit. Disabling its implicit handling and emitting BEGIN ourselves
    makes table creation and the metadata insert roll back together.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _is_sqlite_memory(url: URL) -> bool:
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


def create_db_engine(database_url: str) -> Engine:
    """Create an engine configured for the given URL."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # SQLite configuration for development/testing. An in-memory database
        # lives on a single connection; a file database gets one connection
        # per session so each session runs its own transaction.
        if _is_sqlite_memory(url):
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        _enable_sqlite_transactional_ddl(engine)
    else:
        # PostgreSQL configuration for production
        engine = create_engine(
            database_url,
            pool_size=20,
            max_overflow=30,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
    return engine


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """
    Create and cache the database engine.

    This is lazy-loaded to ensure environment variables are read at runtime,
    not at module import time.
    """
    global _engine
    if _engine is not None:
        return _engine

    from ..config import get_settings

    _engine = create_db_engine(get_database_url(get_settings().database_url))
    return _engine


def get_session_local() -> sessionmaker:
    """Get a sessionmaker bound to the current engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    session_local = get_session_local()
    db = session_local()
    try:
        yield db
    finally:
        db.close()


def create_system_tables(engine: Engine) -> None:
    """Create the fixed system tables (metadata, languages, translations, media)."""
    # Import all models to ensure they're registered with Base
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


async def init_database(seed_languages: bool = False) -> None:
    """Initialize the database with all system tables."""
    engine = get_engine()
    create_system_tables(engine)

    if seed_languages:
        from ..core.languages import LanguageService

        session = get_session_local()()
        try:
            inserted = LanguageService(session).seed_defaults()
        finally:
            session.close()
        logger.info("Languages seeded", inserted=inserted)

    logger.info("Database initialized")

