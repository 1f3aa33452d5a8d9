"""
PKCE (Proof Key for Code Exchange) helpers.

The verifier stays server-side in a short-lived cookie; only the challenge
is sent to the provider's authorize endpoint.
"""

import base64
import hashlib
import secrets
from typing import Tuple


CODE_CHALLENGE_METHOD = "S256"


def generate_code_verifier() -> str:
    """
    Generate a cryptographically random code verifier for PKCE.

    Returns:
        Base64-URL-encoded random string (43 characters)
    """
    verifier_bytes = secrets.token_bytes(32)
    return base64.urlsafe_b64encode(verifier_bytes).decode("utf-8").rstrip("=")


def generate_code_challenge(verifier: str) -> str:
    """
    Generate code challenge from verifier using S256 method.

    Args:
        verifier: Code verifier string

    Returns:
        Base64-URL-encoded SHA256 hash of verifier
    """
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")


def generate_pkce_pair() -> Tuple[str, str]:
    """Return a fresh ``(verifier, challenge)`` pair."""
    verifier = generate_code_verifier()
    return verifier, generate_code_challenge(verifier)
