"""Shared fixtures: in-memory database, a registered user, and a test client."""

from __future__ import annotations

import os

# Must be set before backend.app modules read settings
os.environ["SQLALCHEMY_DATABASE_URL"] = "sqlite://"
os.environ["GOOGLE_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.database.session import Base, get_db
from backend.app.ai.service import LocalFallbackClient, get_generation_client
from backend.app.models.user import User  # noqa: F401
from backend.app.models.conversation import Conversation, ConversationMessage  # noqa: F401

# StaticPool keeps every connection on the same in-memory database
TEST_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSession = sessionmaker(bind=TEST_ENGINE, autoflush=False)


class StubGenerator:
    """Generation client that records calls and returns a canned reply or raises."""

    def __init__(self, reply: str = "stub reply", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[list[tuple[str, str]], str]] = []

    def generate(self, history, model):
        self.calls.append(([(t.role, t.text) for t in history], model))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture(autouse=True)
def _setup_db():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=TEST_ENGINE)
    yield
    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db():
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def alice(db):
    from backend.app.auth.schemas import UserCreate
    from backend.app.auth.service import create_user

    return create_user(db, UserCreate(username="alice", password="wonderland"))


@pytest.fixture
def generator():
    """Generation client injected into the /chat route; fallback mode by default."""
    return LocalFallbackClient()


@pytest.fixture
def app(db, generator):
    from backend.app.main import app as _app

    def _override_get_db():
        yield db

    _app.dependency_overrides[get_db] = _override_get_db
    _app.dependency_overrides[get_generation_client] = lambda: generator
    yield _app
    _app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)
