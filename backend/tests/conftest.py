"""
Shared fixtures.

Settings are read when ``assurpro.core.db`` is imported, so the required
environment is filled in here before any application module is loaded.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SUPABASE_URL", "http://identity.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-test-key")

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from assurpro.core.db import Base, get_db
from assurpro.models import Entreprise
from assurpro.schemas.auth import EntrepriseProfile
from assurpro.services.identity import (
    IdentityError,
    IdentityErrorKind,
    IdentityUser,
    Session as IdentitySession,
    SignUpResult,
)
from assurpro.services.profile_store import StoreError, StoreErrorKind


def make_user(
    user_id: Optional[str] = None,
    email: str = "agence@example.com",
    verified: bool = True,
    metadata: Optional[Dict[str, Any]] = None,
) -> IdentityUser:
    return IdentityUser(
        id=user_id or str(uuid.uuid4()),
        email=email,
        email_confirmed_at=datetime.now(timezone.utc).isoformat() if verified else None,
        user_metadata=metadata if metadata is not None else {"nom": "Agence Test"},
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def entreprise(db_session) -> Entreprise:
    row = Entreprise(
        id=uuid.uuid4(),
        nom="Agence Test",
        email="agence@example.com",
        email_verified=True,
    )
    db_session.add(row)
    db_session.commit()
    return row


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeIdentityProvider:
    """In-memory stand-in for IdentityProviderClient."""

    def __init__(self) -> None:
        self.users_by_token: Dict[str, IdentityUser] = {}
        self.users_by_id: Dict[str, IdentityUser] = {}
        self.passwords: Dict[str, str] = {}
        self.calls: List[str] = []
        self.fail_with: Optional[IdentityErrorKind] = None

    def add_user(self, user: IdentityUser, token: str = "good-token", password: str = "Secret123") -> None:
        self.users_by_token[token] = user
        self.users_by_id[user.id] = user
        self.passwords[user.email] = password

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise IdentityError(self.fail_with, self.fail_with.value)

    async def get_user(self, access_token: str) -> IdentityUser:
        self._maybe_fail("get_user")
        user = self.users_by_token.get(access_token)
        if user is None:
            raise IdentityError(IdentityErrorKind.UNAUTHENTICATED, "invalid JWT")
        return user

    async def get_user_by_id(self, user_id: str) -> IdentityUser:
        self._maybe_fail("get_user_by_id")
        user = self.users_by_id.get(user_id)
        if user is None:
            raise IdentityError(IdentityErrorKind.NOT_FOUND, "User not found")
        return user

    async def sign_up(self, email, password, *, metadata=None, redirect_to=None) -> SignUpResult:
        self._maybe_fail("sign_up")
        if email in self.passwords:
            raise IdentityError(IdentityErrorKind.ALREADY_REGISTERED, "User already registered")
        user = make_user(email=email, verified=False, metadata=metadata or {})
        self.users_by_id[user.id] = user
        self.passwords[email] = password
        return SignUpResult(user=user, has_session=False)

    async def sign_in_with_password(self, email, password) -> IdentitySession:
        self._maybe_fail("sign_in_with_password")
        if self.passwords.get(email) != password:
            raise IdentityError(IdentityErrorKind.INVALID_CREDENTIALS, "Invalid login credentials")
        user = next(u for u in self.users_by_id.values() if u.email == email)
        if not user.email_verified:
            raise IdentityError(IdentityErrorKind.EMAIL_NOT_CONFIRMED, "Email not confirmed")
        return IdentitySession(access_token="access", refresh_token="refresh", user=user)

    async def resend_signup(self, email, *, redirect_to=None) -> None:
        self._maybe_fail("resend_signup")

    async def send_password_recovery(self, email, *, redirect_to=None) -> None:
        self._maybe_fail("send_password_recovery")

    async def admin_update_password(self, user_id, password) -> None:
        self._maybe_fail("admin_update_password")
        self.passwords[self.users_by_id[user_id].email] = password

    async def update_password(self, access_token, password) -> None:
        self._maybe_fail("update_password")
        user = self.users_by_token.get(access_token)
        if user is None:
            raise IdentityError(IdentityErrorKind.UNAUTHENTICATED, "invalid JWT")
        self.passwords[user.email] = password


class FakeProfileStore:
    """
    Async in-memory profile store with scripted insert failures.

    ``insert_errors`` is consumed one entry per insert call; an entry of
    None lets that insert go through.
    """

    def __init__(self, insert_errors: Optional[List[Optional[StoreErrorKind]]] = None) -> None:
        self.rows: Dict[uuid.UUID, EntrepriseProfile] = {}
        self.insert_errors = list(insert_errors or [])
        self.insert_calls = 0
        self.verified_updates: List[bool] = []
        self.fail_get: Optional[StoreErrorKind] = None

    async def get(self, entreprise_id):
        if self.fail_get is not None:
            raise StoreError(self.fail_get, "lookup failed")
        return self.rows.get(entreprise_id)

    async def email_taken_by_other(self, email, entreprise_id):
        return any(p.email == email and p.id != entreprise_id for p in self.rows.values())

    async def insert(self, entreprise_id, fields):
        self.insert_calls += 1
        if self.insert_errors:
            kind = self.insert_errors.pop(0)
            if kind is not None:
                raise StoreError(kind, kind.value)
        if entreprise_id in self.rows:
            raise StoreError(StoreErrorKind.DUPLICATE_KEY, "duplicate key value")
        profile = EntrepriseProfile(id=entreprise_id, persisted=True, **fields)
        self.rows[entreprise_id] = profile
        return profile

    async def update_fields(self, entreprise_id, fields):
        current = self.rows.get(entreprise_id)
        if current is None:
            return None
        updated = current.model_copy(update=fields)
        self.rows[entreprise_id] = updated
        return updated

    async def set_email_verified(self, entreprise_id, verified):
        self.verified_updates.append(verified)
        current = self.rows[entreprise_id]
        self.rows[entreprise_id] = current.model_copy(update={"email_verified": verified})


class RecordingSleep:
    """Replaces asyncio.sleep; records requested delays without waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def fake_identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.fixture
def client(db_session, fake_identity):
    """
    TestClient wired to the in-memory database and the fake provider.

    Used without a ``with`` block so the lifespan (which builds the real
    HTTP identity client) never runs.
    """
    from assurpro.api.deps import get_identity_client
    from assurpro.main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_identity_client] = lambda: fake_identity
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_user(fake_identity) -> IdentityUser:
    user = make_user(email="agence@example.com")
    fake_identity.add_user(user)
    return user


@pytest.fixture
def auth_headers(auth_user) -> Dict[str, str]:
    return {"Authorization": "Bearer good-token"}
