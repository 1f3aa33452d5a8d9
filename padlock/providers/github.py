"""GitHub OAuth provider."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import ProviderConfig
from ..errors import UserInfoError
from ..models import NormalizedUser, TokenSet
from .base import OAuthProvider, constant_url, http_client, post_token_request

logger = logging.getLogger(__name__)


GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_USER_URL = "https://api.github.com/user"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"


def _api_headers(access_token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/vnd.github+json",
    }


async def exchange_code(
    *,
    code: str,
    code_verifier: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    config: ProviderConfig,
) -> TokenSet:
    token_data = await post_token_request(
        github.token_url(config),
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        },
        provider_id="github",
    )
    return TokenSet(access_token=token_data["access_token"])


def select_email(emails: Any) -> Optional[str]:
    """
    Pick the best address from a ``/user/emails`` listing.

    Preference: primary and verified, then primary, then the first entry.
    Entries without an address are skipped.
    """
    if not isinstance(emails, list):
        return None

    entries: List[Dict[str, Any]] = [
        e for e in emails if isinstance(e, dict) and e.get("email")
    ]
    if not entries:
        return None

    for entry in entries:
        if entry.get("primary") and entry.get("verified"):
            return entry.get("email")

    for entry in entries:
        if entry.get("primary"):
            return entry.get("email")

    return entries[0].get("email")


async def _fetch_primary_email(client: httpx.AsyncClient, access_token: str) -> Optional[str]:
    try:
        response = await client.get(GITHUB_EMAILS_URL, headers=_api_headers(access_token))
        if not response.is_success:
            logger.debug(
                "GitHub email lookup failed",
                extra={"status_code": response.status_code},
            )
            return None
        return select_email(response.json())
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"GitHub email lookup failed: {e}")
        return None


async def fetch_user(access_token: str) -> NormalizedUser:
    async with http_client() as client:
        try:
            response = await client.get(GITHUB_USER_URL, headers=_api_headers(access_token))
        except httpx.HTTPError as e:
            raise UserInfoError("github user lookup failed") from e

        if not response.is_success:
            raise UserInfoError(f"github user lookup failed: HTTP {response.status_code}")

        try:
            profile = response.json()
        except ValueError as e:
            raise UserInfoError("github user lookup returned invalid JSON") from e

        if not isinstance(profile, dict) or profile.get("id") is None:
            raise UserInfoError("github user lookup returned no id")

        email = profile.get("email")
        if not email:
            email = await _fetch_primary_email(client, access_token)

    return NormalizedUser(
        provider="github",
        provider_account_id=str(profile["id"]),
        email=email or None,
        name=profile.get("name") or profile.get("login") or None,
        avatar=profile.get("avatar_url") or None,
        raw=profile,
    )


github = OAuthProvider(
    id="github",
    authorize_url=constant_url(GITHUB_AUTHORIZE_URL),
    token_url=constant_url(GITHUB_TOKEN_URL),
    default_scopes=("read:user", "user:email"),
    exchange_code=exchange_code,
    fetch_user=fetch_user,
)
