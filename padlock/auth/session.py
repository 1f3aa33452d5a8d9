"""
Session Token Module
====================

Issues and verifies the signed session credential set after a successful
login. Tokens are HMAC-signed JWTs carrying only the identity pair
(``provider``, ``providerAccountId``), the derived ``sub`` and the standard
``iat`` / ``exp`` claims. Nothing is stored server-side.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from pydantic import ValidationError
from starlette.requests import Request

from ..models import SessionPayload

logger = logging.getLogger(__name__)


DEFAULT_EXPIRY_SECONDS = 60 * 60
DEFAULT_ALGORITHM = "HS256"


# =============================================================================
# Exceptions
# =============================================================================

class SessionTokenError(Exception):
    """Raised when a session token is malformed, tampered with or expired."""
    pass


class SessionTokenExpired(SessionTokenError):
    pass


# =============================================================================
# Token Creation
# =============================================================================

def issue_session_token(
    payload: SessionPayload,
    secret: str,
    expires_in_seconds: int = DEFAULT_EXPIRY_SECONDS,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """
    Sign a session token for ``payload``.

    Args:
        payload: Identity claims (``sub`` is already derived from the pair)
        secret: HMAC signing secret
        expires_in_seconds: Lifetime of the token
        algorithm: HS256, HS384 or HS512

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    claims = payload.to_claims()
    claims.update({
        "iat": now,
        "exp": now + timedelta(seconds=expires_in_seconds),
    })

    token = jwt.encode(claims, secret, algorithm=algorithm)

    logger.debug(
        "Issued session token",
        extra={"sub": payload.sub, "expires_in_seconds": expires_in_seconds},
    )
    return token


# =============================================================================
# Token Verification
# =============================================================================

def verify_session_token(
    token: str,
    secret: str,
    algorithm: str = DEFAULT_ALGORITHM,
) -> SessionPayload:
    """
    Verify and decode a session token.

    Returns:
        The identity claims, without the ``iat`` / ``exp`` metadata

    Raises:
        SessionTokenExpired: If the token is past its expiry
        SessionTokenError: On a bad signature, missing claims or malformed token
    """
    if not token:
        raise SessionTokenError("No session token provided")

    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={
                "verify_signature": True,
                "verify_exp": True,
                "require": ["exp", "sub", "provider", "providerAccountId"],
            },
        )
    except ExpiredSignatureError as e:
        raise SessionTokenExpired("Token has expired") from e
    except InvalidTokenError as e:
        raise SessionTokenError(f"Invalid token: {e}") from e

    try:
        return SessionPayload(
            sub=decoded["sub"],
            provider=decoded["provider"],
            provider_account_id=decoded["providerAccountId"],
        )
    except ValidationError as e:
        raise SessionTokenError("Invalid token claims") from e


# =============================================================================
# Helper Functions
# =============================================================================

def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the token from a ``Bearer <token>`` Authorization header.

    Returns:
        The token, or None if the header is absent or uses another scheme
    """
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


def extract_session_token(request: Request, cookie_name: str) -> Optional[str]:
    """Find a candidate token; the Authorization header wins over the cookie."""
    token = extract_bearer_token(request.headers.get("authorization"))
    if token:
        return token
    return request.cookies.get(cookie_name) or None


__all__ = [
    "issue_session_token",
    "verify_session_token",
    "extract_bearer_token",
    "extract_session_token",
    "SessionTokenError",
    "SessionTokenExpired",
]
