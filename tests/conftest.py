import os

# Settings are cached on first import, so the test environment must be in place first
os.environ.setdefault("ENV", "test")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LEGACY_FORMAT_ONLY_AUTH"] = "true"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from baas.core.security import create_access_token, get_password_hash
from baas.db.session import create_db_and_tables, engine
from baas.main import app
from baas.models.project import Project
from baas.models.user import User
from baas.services.key_store import KeyStore


@pytest.fixture(autouse=True)
def test_engine():
    """Fresh tables on the shared in-memory engine for every test."""
    create_db_and_tables()
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def test_session(test_engine):
    """Create a test session."""
    with Session(test_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def client(test_engine):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def test_user(test_session):
    """Create a dashboard user."""
    user = User(
        email="owner@example.com",
        hashed_password=get_password_hash("testpassword"),
        is_active=True
    )
    test_session.add(user)
    test_session.commit()
    test_session.refresh(user)
    return user


@pytest.fixture
def other_user(test_session):
    user = User(
        email="intruder@example.com",
        hashed_password=get_password_hash("testpassword"),
        is_active=True
    )
    test_session.add(user)
    test_session.commit()
    test_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user):
    token = create_access_token({"sub": test_user.id, "email": test_user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_project(test_session, test_user):
    project = Project(name="Demo", description="", owner_id=test_user.id)
    test_session.add(project)
    test_session.commit()
    test_session.refresh(project)
    return project


@pytest.fixture
def make_key(test_session, test_project):
    """Factory issuing keys on the test project; returns (record, secret)."""
    def _make(capabilities=None, **kwargs):
        return KeyStore(test_session).create(
            project_id=kwargs.pop("project_id", test_project.id),
            capabilities=capabilities,
            **kwargs
        )
    return _make


@pytest.fixture
def test_api_key(make_key):
    """A live key with the default auth + database capabilities."""
    return make_key()
