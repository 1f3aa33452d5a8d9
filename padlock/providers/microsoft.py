"""
Microsoft Entra ID (Azure AD v2.0) provider.

Tenant policy: with exactly one allowed tenant both endpoints are scoped to
it. With none or several, the ``common`` endpoints are used and, when the
allow-list is non-empty, the ``tid`` claim of the issued access token is
checked against it after the exchange.
"""

import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..auth.utils import get_unverified_claim
from ..config import ProviderConfig
from ..errors import TenantNotAllowedError, UserInfoError
from ..models import NormalizedUser, TokenSet
from .base import OAuthProvider, http_client, post_token_request

logger = logging.getLogger(__name__)


MICROSOFT_AUTHORITY = "https://login.microsoftonline.com"
COMMON_TENANT = "common"
GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"
GRAPH_PHOTO_URL = "https://graph.microsoft.com/v1.0/me/photo/$value"


def allowed_tenants(config: ProviderConfig) -> List[str]:
    return [tenant for tenant in config.allowed_tenants if tenant]


def tenant_segment(config: ProviderConfig) -> str:
    tenants = config.allowed_tenants
    if len(tenants) == 1 and tenants[0]:
        return tenants[0]
    return COMMON_TENANT


def authorize_url(config: ProviderConfig) -> str:
    return f"{MICROSOFT_AUTHORITY}/{tenant_segment(config)}/oauth2/v2.0/authorize"


def token_url(config: ProviderConfig) -> str:
    return f"{MICROSOFT_AUTHORITY}/{tenant_segment(config)}/oauth2/v2.0/token"


def check_tenant(access_token: str, config: ProviderConfig) -> None:
    """
    Enforce the tenant allow-list against the token's ``tid`` claim.

    Raises:
        TenantNotAllowedError: If the list is non-empty and the claim is
            absent or not listed
    """
    tenants = allowed_tenants(config)
    if not tenants:
        return

    tenant_id = get_unverified_claim(access_token, "tid")
    if not tenant_id or tenant_id not in tenants:
        logger.warning("Rejected token from unlisted tenant", extra={"tenant_id": tenant_id})
        raise TenantNotAllowedError()


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
        token_url(config),
        {
            "client_id": client_id,
            "client_secret": client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        },
        provider_id="microsoft",
    )

    access_token = token_data["access_token"]
    check_tenant(access_token, config)
    return TokenSet(access_token=access_token)


async def _fetch_avatar(client: httpx.AsyncClient, access_token: str) -> Optional[str]:
    """Return the profile photo as a data URL, or None if there is none."""
    try:
        response = await client.get(
            GRAPH_PHOTO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
    except httpx.HTTPError as e:
        logger.debug(f"Microsoft photo lookup failed: {e}")
        return None

    if not response.is_success:
        return None

    content_type = response.headers.get("content-type") or "application/octet-stream"
    encoded = base64.b64encode(response.content).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


async def fetch_user(access_token: str) -> NormalizedUser:
    async with http_client() as client:
        try:
            response = await client.get(
                GRAPH_ME_URL,
                params={"$select": "id,displayName,mail,userPrincipalName"},
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise UserInfoError("microsoft user lookup failed") from e

        if not response.is_success:
            raise UserInfoError(f"microsoft user lookup failed: HTTP {response.status_code}")

        try:
            profile: Dict[str, Any] = response.json()
        except ValueError as e:
            raise UserInfoError("microsoft user lookup returned invalid JSON") from e

        if not isinstance(profile, dict) or not profile.get("id"):
            raise UserInfoError("microsoft user lookup returned no id")

        avatar = await _fetch_avatar(client, access_token)

    return NormalizedUser(
        provider="microsoft",
        provider_account_id=str(profile["id"]),
        email=profile.get("mail") or profile.get("userPrincipalName") or None,
        name=profile.get("displayName") or None,
        avatar=avatar,
        raw=profile,
    )


microsoft = OAuthProvider(
    id="microsoft",
    authorize_url=authorize_url,
    token_url=token_url,
    default_scopes=("openid", "profile", "email", "User.Read"),
    exchange_code=exchange_code,
    fetch_user=fetch_user,
)
