"""
FanForge Authentication Module

Resolves the caller of a review endpoint from a Bearer token:

- Auth0 RS256 tokens verified against the tenant's JWKS (cached for an hour)
- Local HS256 tokens, signed with ``secret_key``, when Auth0 is not configured
- User documents cached in Redis for ``redis_cache_ttl_seconds``

Any failure to establish a verified identity raises ``UnauthenticatedError``.

Usage:
    ```python
    from fastapi import Depends
    from app.core.auth import get_current_user

    @router.post("/{submission_id}/approve")
    async def approve(submission_id: str, user: dict = Depends(get_current_user)):
        ...
    ```
"""

import asyncio
import logging

from datetime import UTC, datetime, timedelta
from typing import Any

import requests

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import Settings, get_settings
from app.core.database import get_db_client
from app.core.exceptions import UnauthenticatedError
from app.core.redis_client import CacheKeys
from app.utils.cache import get_cached_value, set_cached_value


logger = logging.getLogger(__name__)


# auto_error=False so a missing header yields our 401 rather than FastAPI's default.
security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token. Auth0 tokens in production, local JWTs in development.",
    auto_error=False,
)


# =============================================================================
# Auth0 Token Validator
# =============================================================================


class Auth0TokenValidator:
    """
    Verifies Auth0 RS256 tokens.

    1. Read the key id (kid) from the unverified token header
    2. Find the matching public key in the tenant JWKS (cached)
    3. Verify signature, audience, issuer and expiry

    Attributes:
        settings: Auth0 domain and audience
        _jwks_cache: Last fetched JWKS
        _jwks_cache_time: When it was fetched
    """

    JWKS_CACHE_DURATION = 3600

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._jwks_cache: dict[str, Any] | None = None
        self._jwks_cache_time: datetime | None = None

    def _get_jwks_url(self) -> str:
        return f"https://{self.settings.auth0_domain}/.well-known/jwks.json"

    def _fetch_jwks(self) -> dict[str, Any]:
        """
        Fetch the JWKS, reusing the cached copy for JWKS_CACHE_DURATION seconds.

        Raises:
            HTTPException: 503 when Auth0 cannot be reached.
        """
        now = datetime.now(UTC)
        if self._jwks_cache is not None and self._jwks_cache_time is not None:
            if (now - self._jwks_cache_time).total_seconds() < self.JWKS_CACHE_DURATION:
                return self._jwks_cache

        jwks_url = self._get_jwks_url()
        logger.info("Fetching JWKS from: %s", jwks_url)
        try:
            response = requests.get(jwks_url, timeout=10)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.exception("Failed to fetch JWKS from Auth0")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Unable to verify token: Auth0 JWKS endpoint unavailable",
            ) from e

        self._jwks_cache = response.json()
        self._jwks_cache_time = now
        return self._jwks_cache

    async def get_public_key(self, token: str) -> dict[str, Any]:
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except JWTError as e:
            raise UnauthenticatedError("Invalid token format") from e
        if not kid:
            raise UnauthenticatedError("Invalid token: missing key ID")

        jwks = await asyncio.to_thread(self._fetch_jwks)
        for key in jwks.get("keys", []):
            if key.get("kid") == kid:
                return key

        logger.warning("No matching JWKS key for kid: %s", kid)
        raise UnauthenticatedError("Invalid token: key not found")

    async def validate(self, token: str) -> dict[str, Any]:
        """
        Returns:
            dict: Verified token claims.

        Raises:
            UnauthenticatedError: If the token fails verification.
        """
        rsa_key = await self.get_public_key(token)
        try:
            return jwt.decode(
                token,
                rsa_key,
                algorithms=["RS256"],
                audience=self.settings.auth0_api_audience,
                issuer=f"https://{self.settings.auth0_domain}/",
            )
        except jwt.ExpiredSignatureError as e:
            raise UnauthenticatedError("Token has expired") from e
        except JWTError as e:
            logger.warning("Auth0 token validation failed: %s", e)
            raise UnauthenticatedError("Invalid token") from e


class _ValidatorContainer:
    """Keeps one validator per process so the JWKS cache is shared."""

    validator: Auth0TokenValidator | None = None


_validators = _ValidatorContainer()


def get_auth0_validator(settings: Settings) -> Auth0TokenValidator:
    if _validators.validator is None or _validators.validator.settings is not settings:
        _validators.validator = Auth0TokenValidator(settings)
    return _validators.validator


# =============================================================================
# Local JWT Functions
# =============================================================================


def create_local_jwt(user_id: str, email: str, settings: Settings) -> str:
    """
    Issue a local HS256 JWT (development and tests).

    Claims: sub, email, exp (jwt_expiration_hours ahead), iat, type="local".
    """
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "email": email,
        "exp": now + timedelta(hours=settings.jwt_expiration_hours),
        "iat": now,
        "type": "local",
    }
    return jwt.encode(payload, settings.secret_key, algorithm="HS256")


def validate_local_jwt(token: str, settings: Settings) -> dict[str, Any]:
    """
    Raises:
        JWTError: If the signature is invalid or the token expired.
    """
    return jwt.decode(token, settings.secret_key, algorithms=["HS256"])


def create_access_token(user_id: str, email: str, settings: Settings | None = None) -> str:
    return create_local_jwt(user_id, email, settings or get_settings())


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def authenticate_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Verify the Bearer token with Auth0 when configured, locally otherwise.

    Returns:
        dict: Verified claims.

    Raises:
        UnauthenticatedError: Missing or invalid token.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Unauthorized")

    token = credentials.credentials
    if settings.is_auth0_enabled:
        return await get_auth0_validator(settings).validate(token)

    try:
        return validate_local_jwt(token, settings)
    except jwt.ExpiredSignatureError as e:
        raise UnauthenticatedError("Token has expired") from e
    except JWTError as e:
        logger.warning("Local JWT validation failed: %s", e)
        raise UnauthenticatedError("Invalid token") from e


async def get_current_user(
    token_data: dict[str, Any] = Depends(authenticate_token),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Resolve verified claims to a user document.

    Lookup order: Redis cache (``user:{sub}``), then users by ``_id``,
    ``auth0_id`` and finally ``email``. Found users are cached for
    ``redis_cache_ttl_seconds``.

    Raises:
        UnauthenticatedError: The token names no known user.
    """
    user_id = token_data.get("sub")
    if not user_id:
        raise UnauthenticatedError("Invalid token: missing user identifier")

    cache_key = f"{CacheKeys.USER}:{user_id}"
    cached_user = await get_cached_value(cache_key)
    if cached_user:
        return cached_user

    users = get_db_client().get_users_collection()
    user = await users.find_one({"_id": user_id})
    if user is None:
        user = await users.find_one({"auth0_id": user_id})
    if user is None and token_data.get("email"):
        user = await users.find_one({"email": token_data["email"]})

    if user is None:
        logger.warning("Token subject %s matches no user", user_id)
        raise UnauthenticatedError("Unknown user")

    user["_id"] = str(user["_id"])
    await set_cached_value(cache_key, user, ttl_seconds=settings.redis_cache_ttl_seconds)
    return user


__all__ = [
    "Auth0TokenValidator",
    "authenticate_token",
    "create_access_token",
    "create_local_jwt",
    "get_auth0_validator",
    "get_current_user",
    "security",
    "validate_local_jwt",
]
