"""
Provider Adapters

One adapter per external identity provider. Each turns the provider's
authorization-code handshake into a normalized ProviderIdentity.
"""

from typing import Callable, Dict, Type

import httpx

from ...config import Settings
from .apple import AppleProvider
from .base import OAuthProvider, ProviderAuthError, ProviderIdentity
from .google import GoogleProvider
from .naver import NaverProvider

PROVIDER_CLASSES: Dict[str, Type[OAuthProvider]] = {
    "apple": AppleProvider,
    "naver": NaverProvider,
    "google": GoogleProvider,
}


def build_providers(
    settings: Settings,
    http_client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
) -> Dict[str, OAuthProvider]:
    """Instantiate an adapter for every fully configured provider."""
    return {
        name: PROVIDER_CLASSES[name](config, http_client_factory)
        for name, config in settings.oauth_providers.items()
    }


__all__ = [
    "AppleProvider",
    "GoogleProvider",
    "NaverProvider",
    "OAuthProvider",
    "ProviderAuthError",
    "ProviderIdentity",
    "build_providers",
]
