"""
Error taxonomy for the authentication flow.

Every error is an ``HTTPException`` so FastAPI renders it with the right
status code out of the box. Anything raised during the callback that is not
one of these is wrapped in ``InternalAuthError``.
"""

from typing import Dict, Optional

from fastapi import HTTPException, status


class PadlockError(HTTPException):
    """Base class for all status-bearing authentication errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "auth error"

    def __init__(
        self,
        detail: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


# =============================================================================
# Client errors
# =============================================================================

class BadRequestError(PadlockError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "bad request"


class StateValidationError(BadRequestError):
    """Returned state does not match the cookie bound during initiation."""

    default_detail = "invalid state"


class UnknownProviderError(BadRequestError):
    default_detail = "unknown provider"


class MethodNotAllowedError(PadlockError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    default_detail = "method not allowed"


class ForbiddenError(PadlockError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "forbidden"


class UnauthorizedError(PadlockError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "invalid or missing token"

    def __init__(
        self,
        detail: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(detail, headers or {"WWW-Authenticate": "Bearer"})


class AuthenticationFailed(UnauthorizedError):
    """Raised by (or on behalf of) a trusted provider that rejected the credentials."""

    default_detail = "authentication failed"


# =============================================================================
# Upstream errors
# =============================================================================

class TokenExchangeError(PadlockError):
    """The provider token endpoint failed or returned an unusable response."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "token exchange failed"


class TenantNotAllowedError(TokenExchangeError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "tenant not allowed"


class UserInfoError(PadlockError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "failed to fetch user"


# =============================================================================
# Server errors
# =============================================================================

class ConfigurationError(PadlockError):
    default_detail = "invalid configuration"


class InternalAuthError(PadlockError):
    default_detail = "auth error"


__all__ = [
    "PadlockError",
    "BadRequestError",
    "StateValidationError",
    "UnknownProviderError",
    "MethodNotAllowedError",
    "ForbiddenError",
    "UnauthorizedError",
    "AuthenticationFailed",
    "TokenExchangeError",
    "TenantNotAllowedError",
    "UserInfoError",
    "ConfigurationError",
    "InternalAuthError",
]
