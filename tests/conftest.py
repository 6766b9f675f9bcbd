"""
Shared fixtures.

The app is pointed at a fresh in-memory SQLite database for every test, and
the Google verifier is replaced so no network calls are made.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
from database import Base, get_db
from oauth import get_identity_verifier


@pytest.fixture
def db_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def google_claims():
    """Claims the stubbed Google verifier returns; tokens other than 'valid-google-token' fail."""
    return {
        "sub": "google-123",
        "email": "Budi@Example.com",
        "email_verified": True,
        "name": "Budi",
    }


@pytest.fixture
def client(db_session_factory, google_claims):
    def override_get_db():
        db = db_session_factory()
        try:
            yield db
        finally:
            db.close()

    def fake_verifier(token):
        return dict(google_claims) if token == "valid-google-token" else None

    main.app.dependency_overrides[get_db] = override_get_db
    main.app.dependency_overrides[get_identity_verifier] = lambda: fake_verifier
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def register_user(client):
    def _register(name="Sari", email="sari@example.com", password="rahasia123"):
        response = client.post(
            "/register", json={"name": name, "email": email, "password": password}
        )
        assert response.status_code == 200, response.text
        return response.json()
    return _register


@pytest.fixture
def auth_headers(register_user):
    token = register_user()["token"]
    return {"Authorization": f"Bearer {token}"}
