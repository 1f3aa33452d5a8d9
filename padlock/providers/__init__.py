"""
Supported OAuth providers.

Modules:
- base: OAuthProvider descriptor and the shared token request helper
- github: GitHub (secondary email lookup)
- microsoft: Microsoft Entra ID (tenant scoping, Graph photo avatar)
"""

from typing import Dict

from .base import OAuthProvider
from .github import github
from .microsoft import microsoft

PROVIDERS: Dict[str, OAuthProvider] = {
    github.id: github,
    microsoft.id: microsoft,
}


def get_provider(provider_id: str) -> OAuthProvider:
    """
    Raises:
        KeyError: If ``provider_id`` is not a supported provider
    """
    return PROVIDERS[provider_id]


__all__ = [
    "OAuthProvider",
    "PROVIDERS",
    "get_provider",
    "github",
    "microsoft",
]
