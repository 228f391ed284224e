"""Shared fixtures: in-memory database, fake language model, signed sessions."""
import os
import time

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("IDENTITY_PROVIDER_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import get_db
from main import app
from models import Base
from services import coach
from services.auth import IDENTITY_PROVIDER_SECRET, IDENTITY_PROVIDER_ALGORITHM


class FakeLLM:
    """Stands in for get_chat_model and records what each call asked for."""

    def __init__(self, responses):
        self.model = FakeListChatModel(responses=list(responses))
        self.max_tokens = []
        self.prompts = []

    def __call__(self, max_tokens):
        self.max_tokens.append(max_tokens)
        return self

    def invoke(self, messages):
        self.prompts.append(messages[-1].content)
        return self.model.invoke(messages)


@pytest.fixture
def test_engine():
    """Create a test database engine."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    """Create a test database session."""
    TestingSession = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_engine):
    """Create a test client backed by the in-memory database."""
    TestingSession = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fake_llm(monkeypatch):
    """Install a fake model that answers with the given replies, in order."""
    def install(*responses):
        llm = FakeLLM(responses)
        monkeypatch.setattr(coach, "get_chat_model", llm)
        return llm
    return install


@pytest.fixture
def failing_llm(monkeypatch):
    """Make every model call fail as if the provider were unreachable."""
    def unavailable(max_tokens):
        raise ConnectionError("provider unreachable")
    monkeypatch.setattr(coach, "get_chat_model", unavailable)


def make_session_token(sub="user-1", email="ada@example.com", expires_in=3600, **claims):
    payload = {"sub": sub, "email": email, "exp": int(time.time()) + expires_in, **claims}
    return jwt.encode(payload, IDENTITY_PROVIDER_SECRET, algorithm=IDENTITY_PROVIDER_ALGORITHM)


@pytest.fixture
def auth_headers():
    """Bearer headers carrying a valid identity-provider session."""
    return {"Authorization": f"Bearer {make_session_token(first_name='Ada', last_name='Lovelace')}"}


@pytest.fixture
def other_user_headers():
    return {"Authorization": f"Bearer {make_session_token(sub='user-2', email='grace@example.com')}"}


@pytest.fixture
def session_token():
    """Factory for signed identity-provider session tokens."""
    return make_session_token
