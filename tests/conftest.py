"""
Shared test fixtures: a Flask app on in-memory SQLite, its test client,
and helpers to create users and log them in.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from api import create_app
from models import storage
from models.credential_store import CredentialStore

TEST_SIGNING_KEY = "test-signing-key-for-testing-only"
TEST_ISSUER = "ecomanager-api"
PASSWORD = "Secret123!"


def make_app(**overrides):
    settings = {"SIGNING_KEY": TEST_SIGNING_KEY}
    settings.update(overrides)
    return create_app("testing", overrides=settings)


def create_token(user_id: str, kind: str = "access", expired: bool = False, role: str = "user", jti: str = "jti-1") -> str:
    """Hand-made token signed with the test key."""
    now = datetime.now(timezone.utc)
    exp = now - timedelta(minutes=5) if expired else now + timedelta(minutes=5)
    payload = {
        "iss": TEST_ISSUER,
        "sub": user_id,
        "type": kind,
        "role": role,
        "jti": jti,
        "iat": int((now - timedelta(minutes=10)).timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, TEST_SIGNING_KEY, algorithm="HS256")


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email="alice@example.com", password=PASSWORD, name="Alice", **extra):
    return client.post("/api/auth/register", json={"email": email, "password": password, "name": name, **extra})


def login(client, email="alice@example.com", password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def register_and_login(client, email="alice@example.com", password=PASSWORD, name="Alice"):
    assert register(client, email, password, name).status_code == 201
    resp = login(client, email, password)
    assert resp.status_code == 200
    return resp.get_json()["data"]


def promote(app, email: str, role: str = "admin"):
    with app.app_context():
        user = CredentialStore(storage).find_by_identifier(email)
        user.role = role
        user.save()


@pytest.fixture
def app():
    app = make_app()
    yield app
    # drop the in-memory database
    storage.configure("sqlite://")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def alice(client):
    """Registered and logged-in regular user: login payload (tokens + user)."""
    return register_and_login(client)


@pytest.fixture
def admin(app, client):
    register(client, email="admin@example.com", name="Admin")
    promote(app, "admin@example.com")
    return login(client, email="admin@example.com").get_json()["data"]
