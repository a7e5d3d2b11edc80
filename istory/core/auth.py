"""Authentication dependencies for FastAPI routes.

Supabase-issued access tokens are verified with the project's HS256 JWT
secret. Admin routes use a separate shared secret.
"""

import hmac
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from istory.core.config import settings
from istory.schemas.auth import CurrentUser, JWTClaims
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

security = HTTPBearer(auto_error=False)


class JWTVerifier:
    """Verifies Supabase access tokens signed with the shared secret."""

    def __init__(self, supabase_url: str, jwt_secret: str):
        self.expected_issuer = f"{supabase_url.rstrip('/')}/auth/v1" if supabase_url else None
        self.jwt_secret = jwt_secret

    def verify_token(self, token: str) -> JWTClaims:
        """Decode and validate a token.

        Raises:
            jwt.InvalidTokenError: If the token is invalid, expired or from another issuer
        """
        if not self.jwt_secret:
            raise jwt.InvalidTokenError("SUPABASE_JWT_SECRET is not configured")

        payload = jwt.decode(
            token,
            self.jwt_secret,
            algorithms=["HS256"],
            audience="authenticated",
            issuer=self.expected_issuer,
            options={"require": ["sub", "exp", "iat", "iss"]},
        )
        return JWTClaims(**payload)


jwt_verifier = JWTVerifier(settings.supabase_url, settings.supabase_jwt_secret)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentUser:
    """Get the current authenticated user from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = jwt_verifier.verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        LOGGER.warning(f"Invalid token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return CurrentUser(id=claims.sub, email=claims.email, role=claims.role or "user")


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> None:
    """Require ``Authorization: Bearer <ADMIN_SECRET>``.

    Raises:
        HTTPException: 500 if no admin secret is configured, 401 if it does not match
    """
    admin_secret = settings.admin_secret
    if not admin_secret:
        LOGGER.error("ADMIN_SECRET environment variable not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )

    supplied = credentials.credentials if credentials else ""
    if not hmac.compare_digest(supplied.encode(), admin_secret.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
