"""
OAuth provider descriptors.

Each supported provider is one immutable ``OAuthProvider`` value bundling its
endpoints with the coroutines that talk to them. The orchestrator only ever
goes through these fields, so adding a provider means adding a descriptor.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from ..config import ProviderConfig
from ..errors import TokenExchangeError
from ..models import NormalizedUser, TokenSet

logger = logging.getLogger(__name__)


HTTP_TIMEOUT_SECONDS = 10.0


ExchangeCode = Callable[..., Awaitable[TokenSet]]
FetchUser = Callable[[str], Awaitable[NormalizedUser]]


@dataclass(frozen=True)
class OAuthProvider:
    """
    Capability record for one external OAuth provider.

    Attributes:
        id: Provider identifier used in query parameters and cookie names
        authorize_url: Resolves the authorize endpoint for a provider config
        token_url: Resolves the token endpoint for a provider config
        default_scopes: Scopes always requested; configured scopes are appended
        exchange_code: ``(code=, code_verifier=, client_id=, client_secret=,
            redirect_uri=, config=) -> TokenSet``
        fetch_user: ``(access_token) -> NormalizedUser``
    """

    id: str
    authorize_url: Callable[[ProviderConfig], str]
    token_url: Callable[[ProviderConfig], str]
    exchange_code: ExchangeCode
    fetch_user: FetchUser
    default_scopes: Tuple[str, ...] = field(default_factory=tuple)

    def scopes_for(self, config: ProviderConfig) -> List[str]:
        """Default scopes followed by configured ones; duplicates are kept."""
        return [*self.default_scopes, *config.scopes]

    def scope_string(self, config: ProviderConfig) -> str:
        return " ".join(self.scopes_for(config))


def constant_url(url: str) -> Callable[[ProviderConfig], str]:
    def resolve(config: ProviderConfig) -> str:
        return url
    return resolve


def http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)


# =============================================================================
# Token Exchange Helper
# =============================================================================

async def post_token_request(
    token_url: str,
    payload: Dict[str, str],
    provider_id: str,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    POST a form-encoded token request and return the parsed JSON body.

    Args:
        token_url: Provider token endpoint
        payload: Form fields (code, verifier, client credentials...)
        provider_id: Used for log context only
        headers: Extra request headers

    Returns:
        Token response dictionary containing at least ``access_token``

    Raises:
        TokenExchangeError: On transport errors, non-2xx responses, error
            bodies or a response without an access token
    """
    request_headers = {
        "Accept": "application/json",
        "Content-Type": "application/x-www-form-urlencoded",
    }
    if headers:
        request_headers.update(headers)

    try:
        async with http_client() as client:
            response = await client.post(token_url, data=payload, headers=request_headers)
    except httpx.HTTPError as e:
        logger.warning(
            f"Token endpoint unreachable: {e}",
            extra={"provider": provider_id},
        )
        raise TokenExchangeError("token endpoint unreachable") from e

    token_data = _json_or_empty(response)

    if not response.is_success:
        error_msg = (
            token_data.get("error_description")
            or token_data.get("error")
            or f"HTTP {response.status_code}"
        )
        logger.warning(
            "Token exchange rejected",
            extra={"provider": provider_id, "status_code": response.status_code},
        )
        raise TokenExchangeError(f"token exchange failed: {error_msg}")

    # Some providers (GitHub) answer 200 with an error body.
    if token_data.get("error"):
        error_msg = token_data.get("error_description") or token_data["error"]
        raise TokenExchangeError(f"token exchange failed: {error_msg}")

    if not isinstance(token_data.get("access_token"), str) or not token_data["access_token"]:
        raise TokenExchangeError("token response missing access_token")

    return token_data


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
