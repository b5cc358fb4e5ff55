import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_BACKEND"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront import services
from storefront.api import app
from storefront.database import ROLE_ADMIN, Base
from storefront.models.user import User
from storefront.sessions import InMemorySessionStore


@pytest.fixture
def session_local(monkeypatch):
    """Provide an isolated in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    monkeypatch.setattr(services, "SessionLocal", TestingSessionLocal)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def session_store(monkeypatch):
    store = InMemorySessionStore()
    monkeypatch.setattr(app.state, "session_store", store, raising=False)
    return store


@pytest.fixture
def make_client(session_local, session_store):
    """Return a factory of clients, each with its own cookie jar."""

    def _make() -> TestClient:
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def promote(session_local):
    """Give an existing account the admin role."""

    def _promote(email: str) -> None:
        session = session_local()
        try:
            user = session.query(User).filter(User.email == email).one()
            user.role = ROLE_ADMIN
            session.commit()
        finally:
            session.close()

    return _promote


@pytest.fixture
def make_user(session_local, promote):
    """Register an account through the service layer and return it."""

    def _make(email: str, name: str = "Someone", admin: bool = False) -> User:
        services.register_user(email, "password123", name)
        if admin:
            promote(email)
        return services.get_user(_user_id(session_local, email))

    return _make


def _user_id(session_local, email: str) -> int:
    session = session_local()
    try:
        return session.query(User.id).filter(User.email == email).scalar()
    finally:
        session.close()
