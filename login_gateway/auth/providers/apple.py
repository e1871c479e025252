"""
Sign in with Apple adapter.

Apple differs from the other providers in three ways:
- the callback arrives as a cross-site POST form (``response_mode=form_post``)
- the client secret is a short-lived ES256 JWT signed with the team's .p8 key
- the identity comes from the ``id_token`` returned by the token endpoint,
  verified against Apple's JWKS
"""

import logging
import time
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional

import httpx
import jwt
from fastapi import Request

from ...config import OAuthProviderSettings
from ..utils import JWKSCache, verify_id_token
from .base import OAuthProvider, ProviderAuthError, ProviderIdentity

logger = logging.getLogger(__name__)

APPLE_ISSUER = "https://appleid.apple.com"
CLIENT_SECRET_TTL_SECONDS = 300


class AppleProvider(OAuthProvider):
    name = "apple"
    authorize_endpoint = "https://appleid.apple.com/auth/authorize"
    token_endpoint = "https://appleid.apple.com/auth/token"
    jwks_uri = "https://appleid.apple.com/auth/keys"

    def __init__(
        self,
        config: OAuthProviderSettings,
        http_client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    ):
        super().__init__(config, http_client_factory)
        self.jwks = JWKSCache(self.jwks_uri, http_client_factory=http_client_factory)
        self._private_key: Optional[str] = None

    def authorization_params(
        self, state: str, session: MutableMapping[str, Any]
    ) -> Dict[str, str]:
        return {
            "response_type": "code",
            "response_mode": "form_post",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.callback_url,
            "state": state,
        }

    async def read_callback(self, request: Request) -> Dict[str, Any]:
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    def _load_private_key(self) -> str:
        if self._private_key is None:
            path = self.config.private_key_path
            if not path:
                raise ProviderAuthError("Apple private key path is not configured")
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    self._private_key = fh.read()
            except OSError as e:
                raise ProviderAuthError(f"Unable to read Apple private key {path}: {e}") from e
        return self._private_key

    def client_secret(self) -> str:
        """Build the ES256 client-secret JWT Apple expects at its token endpoint."""
        now = int(time.time())
        claims = {
            "iss": self.config.team_id,
            "iat": now,
            "exp": now + CLIENT_SECRET_TTL_SECONDS,
            "aud": APPLE_ISSUER,
            "sub": self.config.client_id,
        }
        try:
            return jwt.encode(
                claims,
                self._load_private_key(),
                algorithm="ES256",
                headers={"kid": self.config.key_id},
            )
        except (ValueError, jwt.PyJWTError) as e:
            raise ProviderAuthError(f"Unable to sign Apple client secret: {e}") from e

    async def fetch_identity(
        self,
        code: str,
        payload: Mapping[str, Any],
        session: MutableMapping[str, Any],
    ) -> ProviderIdentity:
        async with self.http_client() as client:
            token_response = await client.post(
                self.token_endpoint,
                data={
                    "grant_type": "authorization_code",
                    "client_id": self.config.client_id,
                    "client_secret": self.client_secret(),
                    "code": code,
                    "redirect_uri": self.config.callback_url,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            tokens = self.json_or_error(token_response, "Apple token exchange")

        id_token = tokens.get("id_token")
        if not id_token:
            raise ProviderAuthError("Apple token response missing id_token")

        claims = await verify_id_token(
            id_token,
            self.jwks,
            audience=self.config.client_id,
            issuer=APPLE_ISSUER,
        )

        return ProviderIdentity(
            id=str(claims.get("sub") or ""),
            provider=self.name,
            display_name=claims.get("email"),
        )
