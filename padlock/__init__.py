"""
Padlock: OAuth2 (Authorization Code + PKCE) and trusted-provider login for
FastAPI applications, with a signed, stateless session token.

Usage:
    from padlock import Padlock, PadlockConfig, ProviderConfig, SessionConfig
    from padlock import create_auth_router

    padlock = Padlock(PadlockConfig(
        base_url="https://app.example.com",
        providers={"github": ProviderConfig(client_id="...", client_secret="...")},
        session=SessionConfig(secret="..."),
    ))
    app.include_router(create_auth_router(padlock))
"""

from .auth.flow import Padlock
from .auth.routes import create_auth_router
from .auth.session import issue_session_token, verify_session_token
from .auth.trusted import TrustedProvider, trusted_provider
from .config import (
    PadlockConfig,
    ProviderConfig,
    SessionConfig,
    SessionCookieConfig,
    Settings,
    get_settings,
)
from .errors import AuthenticationFailed, PadlockError
from .models import NormalizedUser, SessionPayload
from .providers import PROVIDERS, OAuthProvider

__version__ = "0.1.0"

__all__ = [
    "Padlock",
    "create_auth_router",
    "issue_session_token",
    "verify_session_token",
    "TrustedProvider",
    "trusted_provider",
    "PadlockConfig",
    "ProviderConfig",
    "SessionConfig",
    "SessionCookieConfig",
    "Settings",
    "get_settings",
    "AuthenticationFailed",
    "PadlockError",
    "NormalizedUser",
    "SessionPayload",
    "PROVIDERS",
    "OAuthProvider",
]
