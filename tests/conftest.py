"""Test configuration and fixtures.

Every test gets its own in-memory SQLite database (StaticPool keeps the one
connection alive). API tests talk to the app through TestClient with
``get_db`` overridden to hand out sessions bound to that database.
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from content_hub.api import app
from content_hub.core.factory import TableFactory
from content_hub.core.gateway import QueryGateway
from content_hub.core.languages import LanguageService
from content_hub.db.base import create_db_engine, create_system_tables, get_db
from content_hub.schemas.content_v1 import LanguageCreate


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    engine = create_db_engine("sqlite:///:memory:")
    create_system_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path) -> Generator[Engine, None, None]:
    """A SQLite file database, one connection per session."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'hub.db'}")
    create_system_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def languages(db_session: Session) -> LanguageService:
    """English as default plus an inactive French."""
    service = LanguageService(db_session)
    service.define(LanguageCreate(code="en", name="English", is_default=True))
    service.define(LanguageCreate(code="fr", name="French", native_name="Français"))
    return service


@pytest.fixture
def articles(db_session: Session) -> QueryGateway:
    """An ``articles`` table with one record ``{title: "Hi", body: "World"}``."""
    TableFactory(db_session).create_table(
        "articles",
        [{"name": "title", "type": "text"}, {"name": "body", "type": "textarea"}],
    )
    gateway = QueryGateway(db_session)
    gateway.create("articles", {"title": "Hi", "body": "World"})
    return gateway


@pytest.fixture
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    """TestClient whose requests use the per-test in-memory database."""

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
