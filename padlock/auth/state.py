"""
Anti-forgery state binding.

At initiation a random token is stored in ``oauth_state_<provider>`` and the
wire ``state`` parameter carries ``{"provider": ..., "state": ...}``. At
completion the provider is resolved from the parameter first, then the
embedded token is compared against that provider's cookie.
"""

import hmac
import json
import secrets
from typing import Optional, Tuple

from ..errors import StateValidationError


STATE_COOKIE_PREFIX = "oauth_state_"
PKCE_COOKIE_PREFIX = "pkce_"


def state_cookie_name(provider_id: str) -> str:
    return f"{STATE_COOKIE_PREFIX}{provider_id}"


def pkce_cookie_name(provider_id: str) -> str:
    return f"{PKCE_COOKIE_PREFIX}{provider_id}"


def generate_state_token() -> str:
    return secrets.token_urlsafe(32)


def encode_state_param(provider_id: str, token: str) -> str:
    return json.dumps({"provider": provider_id, "state": token}, separators=(",", ":"))


def decode_state_param(raw: str) -> Tuple[str, str]:
    """
    Parse the ``state`` query parameter returned by the provider.

    Returns:
        ``(provider_id, token)``

    Raises:
        StateValidationError: If the parameter is not the JSON object we issued
    """
    try:
        parsed = json.loads(raw)
    except ValueError:
        raise StateValidationError("malformed state")

    if not isinstance(parsed, dict):
        raise StateValidationError("malformed state")

    provider_id = parsed.get("provider")
    token = parsed.get("state")
    if not isinstance(provider_id, str) or not provider_id:
        raise StateValidationError("malformed state")
    if not isinstance(token, str) or not token:
        raise StateValidationError("malformed state")

    return provider_id, token


def validate_state_token(received: str, expected: Optional[str]) -> None:
    """
    Require the returned token to equal the one stored at initiation.

    Raises:
        StateValidationError: On a missing cookie or any mismatch
    """
    if not expected or not hmac.compare_digest(received.encode(), expected.encode()):
        raise StateValidationError("invalid state")
