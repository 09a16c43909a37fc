# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Verifies Supabase-issued user JWTs. Tokens are never issued here.
#
# Supports both:
# - ES256 (Supabase JWT signing keys) via the project's JWKS endpoint
# - HS256 (legacy Supabase JWT secret)
#
# The verifier is built once by create_app() and kept on app.state, so
# there is no module-level key cache or settings import.
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
# =============================================================================

import logging
import threading
import time
from typing import Any
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from app.auth.models import AuthUser

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer()

JWKS_CACHE_TTL = 3600  # 1 hour


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class SupabaseTokenVerifier:
    """
    Verifies Supabase access tokens and extracts the user.

    Example:
        verifier = SupabaseTokenVerifier(settings.SUPABASE_JWT_SECRET, settings.SUPABASE_URL)
        user = verifier.verify(token)
    """

    def __init__(self, jwt_secret: str, supabase_url: str, audience: str = "authenticated"):
        self.jwt_secret = jwt_secret
        self.jwks_url = f"{supabase_url.rstrip('/')}/auth/v1/.well-known/jwks.json"
        self.audience = audience
        self._jwks: dict[str, Any] = {}
        self._jwks_time = 0.0
        self._lock = threading.Lock()

    def _fetch_jwks(self) -> dict[str, Any]:
        """Fetch JWKS from Supabase with caching."""
        with self._lock:
            now = time.time()
            if self._jwks and (now - self._jwks_time) < JWKS_CACHE_TTL:
                return self._jwks
            try:
                response = httpx.get(self.jwks_url, timeout=10)
                response.raise_for_status()
                self._jwks = response.json()
                self._jwks_time = now
                logger.debug(f"Fetched JWKS from {self.jwks_url}")
            except httpx.HTTPError as e:
                # Keep serving the stale key set if there is one
                logger.warning(f"Failed to fetch JWKS: {e}")
            return self._jwks or {"keys": []}

    def _signing_key(self, token: str) -> tuple[Any, str]:
        """Return (key, algorithm) to verify this token with."""
        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            return self.jwt_secret, "HS256"

        alg = header.get("alg", "HS256")
        kid = header.get("kid")
        if alg == "HS256":
            return self.jwt_secret, "HS256"

        if kid:
            for key in self._fetch_jwks().get("keys", []):
                if key.get("kid") == kid:
                    return key, alg

        logger.warning(f"Could not find key for alg={alg}, kid={kid}, falling back to HS256")
        return self.jwt_secret, "HS256"

    def verify(self, token: str) -> AuthUser:
        """
        Decode and verify a token.

        Raises:
            HTTPException: 401 if the token is invalid, expired or has no user
        """
        try:
            key, algorithm = self._signing_key(token)
            payload = jwt.decode(token, key, algorithms=[algorithm], audience=self.audience)
        except ExpiredSignatureError:
            logger.warning("JWT token has expired")
            raise _unauthorized("Token has expired")
        except JWTError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise _unauthorized(f"Invalid token: {e}")

        user_id = payload.get("sub")
        if not user_id:
            logger.warning("JWT token missing 'sub' claim")
            raise _unauthorized("Invalid token: missing user ID")

        try:
            user_uuid = UUID(user_id)
        except ValueError:
            logger.warning(f"Invalid UUID in token: {user_id}")
            raise _unauthorized("Invalid token: malformed user ID")

        logger.debug(f"Authenticated user: {user_id}")
        return AuthUser(id=user_uuid, email=payload.get("email"))


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthUser:
    """
    Extract and validate the user from the Bearer token.

    Args:
        request: Current request (verifier lives on app.state)
        credentials: Bearer token from Authorization header

    Returns:
        AuthUser: The authenticated user

    Raises:
        HTTPException: 401 if token is invalid or expired
    """
    verifier: SupabaseTokenVerifier = request.app.state.token_verifier
    return verifier.verify(credentials.credentials)
