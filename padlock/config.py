"""
Configuration module for Padlock.

Two layers live here:

- Plain pydantic models (``ProviderConfig``, ``SessionConfig``,
  ``PadlockConfig``) describing one immutable configuration value that is
  built once at startup and handed to the ``Padlock`` orchestrator.
- ``Settings``, a pydantic-settings class that loads the same values from
  environment variables (or a ``.env`` file) for the bundled application.
"""

from functools import lru_cache
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


InvalidConfigurationMode = Literal["silent", "warn", "error"]


# =============================================================================
# Provider Configuration
# =============================================================================

class ProviderConfig(BaseModel):
    """Application settings for one OAuth provider."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., description="OAuth client id")
    client_secret: SecretStr = Field(..., description="OAuth client secret (never logged)")
    scopes: List[str] = Field(
        default_factory=list,
        description="Scopes appended to the provider's default scopes",
    )
    redirect_uri: Optional[str] = Field(
        None,
        description="Overrides '<base_url><callback_path>' when set",
    )
    allowed_tenants: List[str] = Field(
        default_factory=list,
        description="Tenant ids accepted by multi-tenant providers",
    )


# =============================================================================
# Session Configuration
# =============================================================================

class SessionCookieConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "padlock_token"
    http_only: bool = True
    same_site: Literal["lax", "strict", "none"] = "lax"
    secure: bool = False
    path: str = "/"


class SessionConfig(BaseModel):
    """Session token signing settings."""

    model_config = ConfigDict(frozen=True)

    secret: SecretStr = Field(
        ...,
        description="Secret key for signing session tokens (must be cryptographically secure)",
    )
    expires_in_seconds: int = Field(default=3600, ge=1)
    algorithm: str = Field(default="HS256")
    cookie: SessionCookieConfig = Field(default_factory=SessionCookieConfig)

    @field_validator("secret")
    @classmethod
    def validate_secret(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 32:
            raise ValueError("session secret is too short (minimum 32 characters)")
        return v

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """
        Validate the algorithm is one of the supported HMAC algorithms.

        Raises:
            ValueError: If algorithm is not supported
        """
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v


# =============================================================================
# Padlock Configuration
# =============================================================================

class PadlockConfig(BaseModel):
    """
    Complete, immutable configuration handed to ``Padlock``.

    ``trusted_providers`` maps a provider id to any object exposing an
    ``authenticate(*args)`` method. ``on_user`` receives the normalized user
    and returns the (possibly enriched) user; ``on_error`` receives every
    exception raised while completing an OAuth callback.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    base_url: str = Field(..., description="Public origin of the application")
    providers: Dict[str, ProviderConfig] = Field(default_factory=dict)
    trusted_providers: Dict[str, Any] = Field(default_factory=dict)
    session: Optional[SessionConfig] = None

    on_user: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None
    on_invalid_configuration: InvalidConfigurationMode = "warn"

    auth_path: str = "/auth"
    callback_path: str = "/auth/callback"
    ephemeral_max_age: int = Field(default=300, ge=1, le=300)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("trusted_providers")
    @classmethod
    def validate_trusted_providers(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        for key, provider in v.items():
            if not callable(getattr(provider, "authenticate", None)):
                raise ValueError(
                    f'trusted provider "{key}" must expose an authenticate() method'
                )
        return v

    @property
    def default_redirect_uri(self) -> str:
        return f"{self.base_url}{self.callback_path}"


# =============================================================================
# Environment Settings
# =============================================================================

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Only the values the bundled application needs are read here; trusted
    providers and hooks are code, so they are passed to ``create_app``
    directly.
    """

    PADLOCK_BASE_URL: str = Field(
        default="http://localhost:8000",
        description="Public base URL; redirect URIs and the origin guard derive from it",
    )

    GITHUB_CLIENT_ID: Optional[str] = None
    GITHUB_CLIENT_SECRET: Optional[str] = None
    GITHUB_SCOPES: Optional[str] = Field(
        None,
        description="Comma-separated extra GitHub scopes",
    )

    MICROSOFT_CLIENT_ID: Optional[str] = None
    MICROSOFT_CLIENT_SECRET: Optional[str] = None
    MICROSOFT_SCOPES: Optional[str] = None
    MICROSOFT_ALLOWED_TENANTS: Optional[str] = Field(
        None,
        description="Comma-separated tenant ids; one entry scopes the endpoints to that tenant",
    )

    AUTH_SECRET: Optional[str] = Field(
        None,
        description="Session signing secret; sessions are disabled when unset",
        min_length=32,
    )
    SESSION_EXPIRY_SECONDS: int = Field(default=3600, ge=60, le=86400)
    SESSION_COOKIE_NAME: str = "padlock_token"
    SESSION_COOKIE_SECURE: bool = False

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = Field(default=8000, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        return _split_csv(self.ALLOWED_ORIGINS)

    def to_padlock_config(self, **overrides: Any) -> PadlockConfig:
        """
        Build a ``PadlockConfig`` from the environment.

        A provider is included only when its client id is set. Keyword
        arguments (``trusted_providers``, ``on_user``...) are passed through.
        """
        providers: Dict[str, ProviderConfig] = {}

        if self.GITHUB_CLIENT_ID:
            providers["github"] = ProviderConfig(
                client_id=self.GITHUB_CLIENT_ID,
                client_secret=self.GITHUB_CLIENT_SECRET or "",
                scopes=_split_csv(self.GITHUB_SCOPES),
            )

        if self.MICROSOFT_CLIENT_ID:
            providers["microsoft"] = ProviderConfig(
                client_id=self.MICROSOFT_CLIENT_ID,
                client_secret=self.MICROSOFT_CLIENT_SECRET or "",
                scopes=_split_csv(self.MICROSOFT_SCOPES),
                allowed_tenants=_split_csv(self.MICROSOFT_ALLOWED_TENANTS),
            )

        session = None
        if self.AUTH_SECRET:
            session = SessionConfig(
                secret=self.AUTH_SECRET,
                expires_in_seconds=self.SESSION_EXPIRY_SECONDS,
                cookie=SessionCookieConfig(
                    name=self.SESSION_COOKIE_NAME,
                    secure=self.SESSION_COOKIE_SECURE,
                ),
            )

        values: Dict[str, Any] = {
            "base_url": self.PADLOCK_BASE_URL,
            "providers": providers,
            "session": session,
        }
        values.update(overrides)
        return PadlockConfig(**values)


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Cached so the environment is read once during the application lifecycle.

    Raises:
        ValidationError: If environment variables are invalid.
    """
    return Settings()
