"""
Data Models Module

Pydantic models shared by the providers, the session codec and the
orchestrator. Field aliases keep the camelCase wire shape
(``providerAccountId``) while Python code uses snake_case.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Identity Models
# ============================================================================

class NormalizedUser(BaseModel):
    """Provider-agnostic identity produced by every provider."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: str = Field(..., description="Provider identifier (e.g. 'github')")
    provider_account_id: str = Field(
        ...,
        alias="providerAccountId",
        description="Stable account identifier within the provider namespace",
    )
    email: Optional[str] = Field(None, description="Resolved email address")
    name: Optional[str] = Field(None, description="Display name")
    avatar: Optional[str] = Field(None, description="Avatar URL or data URL")
    raw: Any = Field(None, description="Provider payload, passed through untouched")

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class SessionPayload(BaseModel):
    """Claims bound into the session token."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    sub: str = Field(..., description="'<provider>:<providerAccountId>'")
    provider: str
    provider_account_id: str = Field(..., alias="providerAccountId")

    @model_validator(mode="after")
    def _check_subject(self) -> "SessionPayload":
        expected = subject_for(self.provider, self.provider_account_id)
        if self.sub != expected:
            raise ValueError(f"sub must equal '{expected}'")
        return self

    @classmethod
    def for_user(cls, user: NormalizedUser) -> "SessionPayload":
        return cls(
            sub=subject_for(user.provider, user.provider_account_id),
            provider=user.provider,
            provider_account_id=user.provider_account_id,
        )

    def to_claims(self) -> dict:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class TokenSet:
    """Result of a successful authorization code exchange."""

    access_token: str


def subject_for(provider: str, provider_account_id: str) -> str:
    return f"{provider}:{provider_account_id}"
