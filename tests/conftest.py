"""
Shared fixtures.

Settings are read at import time, so the environment is prepared before
anything from m3connect is imported. Content tables live in an in-memory
SQLite database; Supabase is replaced by the fakes in tests/fakes.py.
"""
import os

os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_KEY", "anon-test-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PORTAL_SESSION_SECRET", "test-secret")
os.environ.setdefault("PORTAL_COOKIE_SECURE", "false")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from m3connect.core.browser_sessions import SessionRegistry
from m3connect.core.recovery import RecoveryRouter
from m3connect.database import engine
from m3connect.main import create_app
from m3connect.services.recovery_service import RecoveryService

from fakes import (
    FakeAuthServer,
    FakeBackendFactory,
    FakeNavigator,
    FakeProfileStore,
    FakeRecoveryConnector,
)


@pytest.fixture
def auth_server():
    return FakeAuthServer()


@pytest.fixture
def profile_store():
    return FakeProfileStore()


@pytest.fixture
def navigator():
    return FakeNavigator("/")


@pytest.fixture
def db_session():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def backends(auth_server, profile_store):
    return FakeBackendFactory(auth_server, profile_store)


@pytest.fixture
def recovery_connector(auth_server):
    return FakeRecoveryConnector(auth_server)


@pytest.fixture
def app(backends, recovery_connector, profile_store):
    SQLModel.metadata.drop_all(engine)
    registry = SessionRegistry(backends, RecoveryRouter("/reset-password"))
    recovery_service = RecoveryService(recovery_connector)
    return create_app(
        registry=registry,
        recovery_service=recovery_service,
        admin_store=profile_store,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_member(auth_server, profile_store):
    """Register an account with a profile row; returns its user id."""

    def _make(email: str, password: str = "secret123", **fields) -> str:
        credential = auth_server.add_user(email, password)
        fields.setdefault("email", email)
        profile_store.put(credential.id, **fields)
        return credential.id

    return _make
