# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from datetime import UTC, datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-parley-broker")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")

from parley_broker.api.v1.dependencies import get_broker_dep
from parley_broker.core.security import create_access_token
from parley_broker.db.session import Base
from parley_broker.db.session import get_db as app_get_session
from parley_broker.main import app as fastapi_app
from parley_broker.models import Principal
from parley_broker.services.broker import ChatBroker

TEST_DB_URL = "sqlite://"

# Fixed wall clock used by service tests that need deterministic timestamps.
T0 = datetime(2026, 1, 5, 12, 0, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Services commit, so each test starts from empty tables instead of a savepoint.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def broker() -> Iterator[ChatBroker]:
    """Return a fresh broker so subscriptions never leak between tests."""
    chat_broker = ChatBroker()
    try:
        yield chat_broker
    finally:
        chat_broker.engine.close_all()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(app: FastAPI, db_session: Session, broker: ChatBroker) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_broker_dep] = lambda: broker
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_broker_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def alice(db_session: Session, broker: ChatBroker) -> Principal:
    """Create and return the primary test principal."""
    return broker.registry.register(db_session, "alice@example.com", "Alice")


@pytest.fixture()
def bob(db_session: Session, broker: ChatBroker) -> Principal:
    """Create and return a second principal."""
    return broker.registry.register(db_session, "bob@example.com", "Bob")


@pytest.fixture()
def alice_token(alice: Principal) -> str:
    return create_access_token(alice.principal_id)


@pytest.fixture()
def bob_token(bob: Principal) -> str:
    return create_access_token(bob.principal_id)


@pytest.fixture()
def alice_headers(alice_token: str) -> dict[str, str]:
    """Return authorization headers for the primary principal."""
    return {"Authorization": f"Bearer {alice_token}"}


@pytest.fixture()
def bob_headers(bob_token: str) -> dict[str, str]:
    """Return authorization headers for the second principal."""
    return {"Authorization": f"Bearer {bob_token}"}
