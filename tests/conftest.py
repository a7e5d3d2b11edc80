"""Pytest configuration and shared fixtures."""

import os
import time

# Settings are read at import time, so the environment is set up first.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["SUPABASE_URL"] = "https://project.supabase.co"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"
os.environ["ADMIN_SECRET"] = "test-admin-secret"
os.environ["GEMINI_API_KEY"] = "test-gemini-key"
os.environ["CRE_WORKFLOW_URL"] = ""
os.environ["VERIFIED_METRICS_ADDRESS"] = ""

import jwt
import pytest
from fastapi.testclient import TestClient

from istory.main import app

STORY_ID = "3f2b8c1e-9a4d-4e6f-8b21-0c5d7e9f1a23"
AUTHOR_ID = "7d0e5a94-21b3-4c8f-a6e2-5b9c3d1f0e87"
OTHER_USER_ID = "c1a9f7e2-3b5d-4d80-9e61-2f4a8b6c0d15"


def make_access_token(user_id: str = AUTHOR_ID, **overrides) -> str:
    """Sign a Supabase-style access token for ``user_id``."""
    now = int(time.time())
    claims = {
        "sub": user_id,
        "email": "writer@example.com",
        "role": "authenticated",
        "aud": "authenticated",
        "iss": f"{os.environ['SUPABASE_URL']}/auth/v1",
        "iat": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    return jwt.encode(claims, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def author_headers() -> dict:
    return {"Authorization": f"Bearer {make_access_token(AUTHOR_ID)}"}


@pytest.fixture
def other_user_headers() -> dict:
    return {"Authorization": f"Bearer {make_access_token(OTHER_USER_ID)}"}


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {os.environ['ADMIN_SECRET']}"}
