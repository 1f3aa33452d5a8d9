"""
Token inspection utilities.

Provider access tokens are opaque to us; the only thing ever read from them
is a routing claim (the Microsoft tenant id), which is why the claims are
decoded without signature verification.
"""

from typing import Any, Dict, Optional

from jose import JWTError, jwt


def decode_token_without_verification(token: str) -> Dict[str, Any]:
    """
    Decode a JWT without verifying signature.

    Raises:
        JWTError: If token is malformed
    """
    return jwt.get_unverified_claims(token)


def get_unverified_claim(token: Optional[str], claim: str) -> Optional[str]:
    """
    Read a single string claim from an unverified JWT.

    Returns:
        The claim value, or None when the token is not a JWT or lacks the claim
    """
    if not token:
        return None

    try:
        claims = decode_token_without_verification(token)
    except JWTError:
        return None

    value = claims.get(claim)
    if isinstance(value, str) and value:
        return value
    return None
