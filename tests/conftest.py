"""
Shared fixtures: an app over an in-memory store and a TestClient bound to it
"""

import bcrypt
import pytest
from fastapi.testclient import TestClient

from sleep_tracker.config import Settings
from sleep_tracker.main import create_app
from sleep_tracker.storage import DocumentStore

DEFAULT_USER = {"name": "A", "email": "a@x.com", "password": "p12345"}


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Cheap bcrypt rounds so the suite stays quick"""
    real_gensalt = bcrypt.gensalt
    monkeypatch.setattr(bcrypt, "gensalt", lambda rounds=4, prefix=b"2b": real_gensalt(rounds=4, prefix=prefix))


@pytest.fixture
def settings():
    return Settings(database_url="memory://", jwt_secret="test-secret", environment="test")


@pytest.fixture
def store(settings):
    return DocumentStore(settings.database_url).connect()


@pytest.fixture
def app(settings, store):
    return create_app(settings, store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register(client, **overrides):
    payload = {**DEFAULT_USER, **overrides}
    return client.post("/v1/auth/register", json=payload)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_token(client):
    response = register(client)
    assert response.status_code == 201
    # rely on the header only, not the session cookie
    client.cookies.clear()
    return response.json()["data"]["token"]


@pytest.fixture
def auth_headers(user_token):
    return bearer(user_token)
