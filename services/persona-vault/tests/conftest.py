"""Shared fixtures for the PersonaVault test suite.

Every test gets its own in-memory SQLite database; the HTTP client talks to
it through the ``get_db`` override. User sessions are HS256 tokens signed
with the test secret below.
"""

import os

# Settings are read once at import time, so the environment has to be in
# place before anything under ``app`` is imported.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("INIT_DB_ON_STARTUP", "false")
os.environ.setdefault("SESSION_JWT_SECRET", "test-session-secret-0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Iterator  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.db.deps import get_db  # noqa: E402
from app.db.init_db import init_db  # noqa: E402
from app.main import app as fastapi_app  # noqa: E402
from app.models.app import App  # noqa: E402
from app.models.identity import Identity  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.app_keys import generate_api_key, hash_api_key  # noqa: E402


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
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory) -> Iterator[TestClient]:
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    def _make(name: str = "user") -> User:
        uid = uuid4()
        user = User(id=uid, email=f"{name}-{uid.hex[:8]}@example.test", display_name=name)
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def make_identity(db):
    def _make(owner: User, **fields) -> Identity:
        values = {
            "identity_label": "Alice",
            "category": "PERSONAL",
            "visibility": "PRIVATE",
            "profile_picture_url": "https://cdn.example.test/alice.png",
            "gender_identity": "non-binary",
            "pronouns": "they/them",
            "location": "Lisbon",
            "description": "Weekend climber",
            "identity_contacts": {"email": "alice@example.test"},
            "website_urls": ["https://alice.example.test/"],
            "additional_attributes": {"team": "blue"},
        }
        values.update(fields)
        identity = Identity(user_id=owner.id, **values)
        db.add(identity)
        db.commit()
        db.refresh(identity)
        return identity
    return _make


@pytest.fixture
def make_app(db):
    """Returns (app, plaintext_api_key)."""
    def _make(owner: User, name: str | None = None, **fields):
        api_key = generate_api_key()
        values = {
            "name": name or f"app-{uuid4().hex[:8]}",
            "redirect_uris": ["https://app.example.test/callback"],
            "is_enabled": True,
            "is_admin_approved": True,
            "is_system_app": False,
        }
        values.update(fields)
        obj = App(owner_id=owner.id, api_key_hash=hash_api_key(api_key), **values)
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj, api_key
    return _make


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

def session_token(user_id: UUID, *, expires_in: int = 300, **claims) -> str:
    payload = {
        "sub": str(user_id),
        "aud": settings.OIDC_AUDIENCE,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        **claims,
    }
    return jwt.encode(payload, settings.SESSION_JWT_SECRET, algorithm="HS256")


def user_headers(user_id: UUID) -> dict:
    return {"Authorization": f"Bearer {session_token(user_id)}"}


def app_headers(app_id: UUID, api_key: str) -> dict:
    return {"X-App-ID": str(app_id), "Authorization": f"Bearer {api_key}"}
