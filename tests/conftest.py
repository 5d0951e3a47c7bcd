"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other.

Core tests use the in-memory stores, bcrypt at its minimum cost, and a clock
the test can move forward.

API tests build a fresh app per test on a temporary SQLite file.
"""
from __future__ import annotations

import uuid
from contextlib import ExitStack
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from docportal.core.config import CoreConfig
from docportal.core.enums import Role, Workspace
from docportal.core.lifecycle import DocumentLifecycle
from docportal.core.memory import MemoryCredentialStore, MemoryPermissionStore
from docportal.core.models import UserRecord
from docportal.core.passwords import PasswordHasher
from docportal.core.permissions import PermissionResolver
from docportal.core.revocation import RevocationCache
from docportal.core.service import AuthService
from docportal.core.tokens import TokenService
from docportal.settings import Settings

TEST_DB_URL = "sqlite:///:memory:"
TEST_SECRET = "test-secret-that-is-long-enough-for-hs256-0123456789"
TEST_ROUNDS = 4
DEFAULT_PASSWORD = "Sup3r!Secreto"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ---- Data layer ----------------------------------------------------------------------


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from docportal.db.base import Base
    from docportal.models import documents, security  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The transaction is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def session_factory(tables):
    """Session factory for stores that open their own sessions."""
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def matrix_rows():
    from docportal.security.config import load_permission_matrix

    return load_permission_matrix(Settings().resolved_permission_matrix_path())


# ---- Core ----------------------------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def core_config():
    return CoreConfig(jwt_secret=TEST_SECRET, bcrypt_rounds=TEST_ROUNDS)


@pytest.fixture
def hasher():
    return PasswordHasher(TEST_ROUNDS)


@pytest.fixture
def revocation(clock):
    return RevocationCache(clock=clock)


@pytest.fixture
def token_service(core_config, revocation, clock):
    return TokenService(core_config, revocation, clock=clock)


@pytest.fixture
def resolver(matrix_rows):
    return PermissionResolver.from_store(MemoryPermissionStore(matrix_rows))


@pytest.fixture
def lifecycle(resolver, clock):
    return DocumentLifecycle(resolver, clock=clock)


@pytest.fixture
def users():
    return MemoryCredentialStore()


@pytest.fixture
def make_user(users, hasher):
    def factory(
        role: Role = Role.SECRETARIO_CAM,
        workspace: Workspace = Workspace.CAM,
        email: str | None = None,
        password: str | None = DEFAULT_PASSWORD,
        is_active: bool = True,
        full_name: str = "Test User",
    ) -> UserRecord:
        user = UserRecord(
            id=uuid.uuid4().hex,
            email=email or f"{uuid.uuid4().hex[:8]}@example.org",
            full_name=full_name,
            role=role,
            workspace=workspace,
            password_hash=hasher.hash(password) if password is not None else None,
            is_active=is_active,
        )
        return users.add(user)

    return factory


@pytest.fixture
def auth_service(users, resolver, token_service, hasher, core_config, clock):
    return AuthService(users, resolver, token_service, hasher, core_config, clock=clock)


# ---- API -----------------------------------------------------------------------------

ADMIN_EMAIL = "admin@example.org"


@pytest.fixture
def make_client(tmp_path):
    """
    Build a TestClient around a fresh app with its own SQLite file.

    Keyword arguments override Settings fields. Startup seeds the permission
    matrix and the bootstrap administrator (``ADMIN_EMAIL`` / ``DEFAULT_PASSWORD``).
    """
    from fastapi.testclient import TestClient

    from docportal.main import create_app

    stack = ExitStack()

    def factory(**overrides) -> TestClient:
        fields = dict(
            environment="test",
            db_url=f"sqlite:///{tmp_path / f'api-{uuid.uuid4().hex[:8]}.db'}",
            jwt_secret=TEST_SECRET,
            bcrypt_rounds=TEST_ROUNDS,
            bootstrap_admin_email=ADMIN_EMAIL,
            bootstrap_admin_password=DEFAULT_PASSWORD,
        )
        fields.update(overrides)
        return stack.enter_context(TestClient(create_app(Settings(**fields))))

    yield factory
    stack.close()


@pytest.fixture
def client(make_client):
    return make_client()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def login_tokens(client, email: str = ADMIN_EMAIL, password: str = DEFAULT_PASSWORD) -> dict:
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["tokens"]


@pytest.fixture
def admin_headers(client):
    return bearer(login_tokens(client)["access_token"])
