"""
Base class for OAuth identity provider adapters.

An adapter turns a provider-specific authorization-code handshake into one
normalized ProviderIdentity. Subclasses supply the consent-screen parameters
and the code-for-identity exchange; state handling, callback validation and
error normalization live here.
"""

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional
from urllib.parse import urlencode

import httpx
from fastapi import Request
from jose import JWTError

from ...config import OAuthProviderSettings

logger = logging.getLogger(__name__)


class ProviderAuthError(Exception):
    """The provider rejected the login or its callback could not be validated."""


@dataclass(frozen=True)
class ProviderIdentity:
    """Normalized result of a successful provider login."""

    id: str
    provider: str
    display_name: Optional[str] = None


class OAuthProvider(ABC):
    """
    Authorization-code flow against one external identity provider.

    Attributes:
        name: Provider key used in routes, session keys and the user table
        authorize_endpoint: Consent screen URL
        timeout: Seconds allowed for each call to the provider
    """

    name: str = ""
    authorize_endpoint: str = ""
    timeout: float = 10.0

    def __init__(
        self,
        config: OAuthProviderSettings,
        http_client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    ):
        self.config = config
        self._http_client_factory = http_client_factory

    # -------------------------------------------------------------------------
    # Session keys
    # -------------------------------------------------------------------------

    def session_key(self, item: str) -> str:
        return f"oauth_{self.name}_{item}"

    # -------------------------------------------------------------------------
    # Login initiation
    # -------------------------------------------------------------------------

    def begin_login(self, session: MutableMapping[str, Any]) -> str:
        """
        Start a login attempt.

        Stores a fresh ``state`` in the framework session and returns the
        provider's consent-screen URL for the browser to be redirected to.
        """
        state = secrets.token_urlsafe(32)
        session[self.session_key("state")] = state
        params = self.authorization_params(state, session)
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    @abstractmethod
    def authorization_params(
        self, state: str, session: MutableMapping[str, Any]
    ) -> Dict[str, str]:
        """Query parameters of the consent-screen URL."""

    # -------------------------------------------------------------------------
    # Callback handling
    # -------------------------------------------------------------------------

    async def read_callback(self, request: Request) -> Dict[str, Any]:
        """Extract the callback payload; query string unless overridden."""
        return dict(request.query_params)

    async def complete_login(
        self,
        payload: Mapping[str, Any],
        session: MutableMapping[str, Any],
    ) -> ProviderIdentity:
        """
        Validate a provider callback and exchange its code for an identity.

        Raises:
            ProviderAuthError: If the provider reported an error, the state does
                not match the one issued by begin_login, the code is missing,
                or the exchange fails
        """
        error = payload.get("error")
        if error:
            detail = payload.get("error_description") or error
            raise ProviderAuthError(f"{self.name} returned an error: {detail}")

        expected_state = session.pop(self.session_key("state"), None)
        if not expected_state or payload.get("state") != expected_state:
            raise ProviderAuthError(f"{self.name} callback state mismatch")

        code = payload.get("code")
        if not code:
            raise ProviderAuthError(f"{self.name} callback is missing the authorization code")

        try:
            identity = await self.fetch_identity(code, payload, session)
        except ProviderAuthError:
            raise
        except (httpx.HTTPError, JWTError, ValueError, KeyError) as e:
            raise ProviderAuthError(f"{self.name} token exchange failed: {e}") from e

        if not identity.id:
            raise ProviderAuthError(f"{self.name} did not return a subject identifier")

        return identity

    @abstractmethod
    async def fetch_identity(
        self,
        code: str,
        payload: Mapping[str, Any],
        session: MutableMapping[str, Any],
    ) -> ProviderIdentity:
        """Exchange the authorization code and normalize the provider's profile."""

    # -------------------------------------------------------------------------
    # HTTP helpers
    # -------------------------------------------------------------------------

    def http_client(self) -> httpx.AsyncClient:
        return self._http_client_factory(timeout=self.timeout)

    @staticmethod
    def json_or_error(response: httpx.Response, what: str) -> Dict[str, Any]:
        """
        Decode a provider JSON response, turning error payloads into ProviderAuthError.
        """
        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.is_success:
            message = f"HTTP {response.status_code}"
            if isinstance(data, dict):
                message = data.get("error_description") or data.get("error") or message
            raise ProviderAuthError(f"{what} failed: {message}")

        if not isinstance(data, dict):
            raise ProviderAuthError(f"{what} returned an unexpected payload")

        if data.get("error"):
            raise ProviderAuthError(
                f"{what} failed: {data.get('error_description') or data['error']}"
            )

        return data
