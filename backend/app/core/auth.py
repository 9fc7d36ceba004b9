"""
Bearer Token Authentication Module

This module verifies the ``Authorization: Bearer <jwt>`` credential presented by
upload clients and yields the caller's user ID. Tokens are HS256 (or another
HMAC algorithm) JWTs signed with the deployment's ``jwt_secret``:

- ``sub``: the user ID (UUID)
- ``iss``: must equal ``settings.jwt_issuer``
- ``exp`` / ``iat``: required, expiry enforced

Token issuance belongs to the account service; ``create_access_token`` only
exists so that tooling and tests can mint tokens of the same shape.

Usage:
    ```python
    from fastapi import Depends
    from app.core.auth import get_current_user_id

    @router.get("/protected")
    async def protected_route(user_id: UUID = Depends(get_current_user_id)):
        return {"user_id": str(user_id)}
    ```
"""

import logging

from datetime import UTC, datetime, timedelta
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import Settings, get_settings
from app.core.errors import AuthInvalidError, AuthMissingError


logger = logging.getLogger(__name__)


# =============================================================================
# Security Scheme
# =============================================================================

# auto_error is disabled so a missing header maps to AuthMissing (401)
# instead of FastAPI's built-in 403.
security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT Bearer token authentication.",
    auto_error=False,
)

DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)


# =============================================================================
# Token Functions
# =============================================================================


def get_bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    """
    Extract the raw token from parsed Authorization credentials.

    Raises:
        AuthMissingError: If no Bearer credential was sent.
    """
    if credentials is None or not credentials.credentials.strip():
        raise AuthMissingError()
    return credentials.credentials.strip()


def create_access_token(
    user_id: UUID | str,
    settings: Settings | None = None,
    expires_in: timedelta = DEFAULT_TOKEN_LIFETIME,
) -> str:
    """
    Create an access token for the given user.

    Args:
        user_id: The user's unique identifier.
        settings: Optional Settings instance. If not provided, uses get_settings().
        expires_in: Token lifetime; negative values produce an already-expired token.

    Returns:
        str: The encoded JWT access token.
    """
    if settings is None:
        settings = get_settings()

    now = datetime.now(UTC)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def validate_jwt(token: str, settings: Settings) -> UUID:
    """
    Validate a bearer token and return the user ID it was issued to.

    Args:
        token: The JWT token string to validate.
        settings: Settings instance containing jwt_secret and jwt_issuer.

    Returns:
        UUID: The ``sub`` claim parsed as a user ID.

    Raises:
        AuthInvalidError: If the signature, expiry, issuer or subject is invalid.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require_exp": True, "require_iat": True, "require_sub": True},
        )
    except jwt.ExpiredSignatureError as e:
        logger.warning("JWT has expired")
        raise AuthInvalidError() from e
    except JWTError as e:
        logger.warning("JWT validation failed: %s", str(e))
        raise AuthInvalidError() from e

    try:
        user_id = UUID(str(payload["sub"]))
    except (KeyError, ValueError) as e:
        logger.warning("JWT subject is not a valid user ID")
        raise AuthInvalidError() from e

    logger.debug("JWT validated for subject: %s", user_id)
    return user_id


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    settings: Settings = Depends(get_settings),
) -> UUID:
    """
    FastAPI dependency yielding the authenticated caller's user ID.

    Raises:
        AuthMissingError: No Bearer credential present (401).
        AuthInvalidError: Credential failed verification (401).
    """
    token = get_bearer_token(credentials)
    return validate_jwt(token, settings)
