"""
Shared fixtures: fresh in-memory database and gateway state for every test.
"""
import os

# Must be set before acto.core.config is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_DEMO_USERS"] = "false"
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest


@pytest.fixture(autouse=True)
def fresh_state():
    from acto.core.memory.db import init_db
    from acto.core.observability import get_metrics
    from acto.core.websocket import gateway

    init_db(drop_existing=True)
    gateway.reset()
    get_metrics().reset()
    yield
    gateway.reset()


@pytest.fixture
def db():
    from acto.core.memory.db import db_session

    with db_session() as session:
        yield session


@pytest.fixture
def make_identity(db):
    """Create an identity directly in the store: make_identity("alice") -> Identity."""
    import asyncio
    from acto.core.services.identity_store import IdentityStore

    def _make(handle, password="secret123", display_name=None, contact_address=None):
        return asyncio.run(
            IdentityStore.create(
                db,
                handle=handle,
                contact_address=contact_address or f"{handle}@example.com",
                password=password,
                display_name=display_name,
            )
        )

    return _make


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from acto.core.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Register over HTTP: register("alice") -> (token, identity_json)."""

    def _register(handle, password="secret123", display_name=None):
        body = {"handle": handle, "contactAddress": f"{handle}@example.com", "password": password}
        if display_name:
            body["displayName"] = display_name
        response = client.post("/auth/register", json=body)
        assert response.status_code == 200, response.text
        data = response.json()
        return data["token"], data["identity"]

    return _register
