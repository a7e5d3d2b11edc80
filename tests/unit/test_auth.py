"""Unit tests for bearer token verification."""

import time

import jwt
import pytest

from istory.core.auth import JWTVerifier

SECRET = "unit-test-jwt-secret-with-enough-length"
SUPABASE_URL = "https://project.supabase.co"


def _token(secret=SECRET, **overrides) -> str:
    now = int(time.time())
    claims = {
        "sub": "7d0e5a94-21b3-4c8f-a6e2-5b9c3d1f0e87",
        "aud": "authenticated",
        "iss": f"{SUPABASE_URL}/auth/v1",
        "iat": now,
        "exp": now + 600,
    }
    claims.update(overrides)
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def verifier() -> JWTVerifier:
    return JWTVerifier(SUPABASE_URL, SECRET)


def test_valid_token(verifier):
    claims = verifier.verify_token(_token(email="writer@example.com"))

    assert claims.sub == "7d0e5a94-21b3-4c8f-a6e2-5b9c3d1f0e87"
    assert claims.email == "writer@example.com"


@pytest.mark.parametrize(
    "token_kwargs",
    [
        {"secret": "another-secret-that-is-long-enough-too"},
        {"exp": int(time.time()) - 60},
        {"aud": "anon"},
        {"iss": "https://elsewhere.supabase.co/auth/v1"},
    ],
)
def test_invalid_tokens(verifier, token_kwargs):
    with pytest.raises(jwt.InvalidTokenError):
        verifier.verify_token(_token(**token_kwargs))


def test_unconfigured_secret_rejects_everything():
    with pytest.raises(jwt.InvalidTokenError):
        JWTVerifier(SUPABASE_URL, "").verify_token(_token())
