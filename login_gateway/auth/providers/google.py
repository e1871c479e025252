"""Google OAuth 2.0 adapter (profile scope, PKCE)."""

from typing import Any, Dict, Mapping, MutableMapping

from ..utils import generate_code_challenge, generate_code_verifier
from .base import OAuthProvider, ProviderAuthError, ProviderIdentity


class GoogleProvider(OAuthProvider):
    name = "google"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    userinfo_endpoint = "https://www.googleapis.com/oauth2/v3/userinfo"
    scope = "profile"

    def authorization_params(
        self, state: str, session: MutableMapping[str, Any]
    ) -> Dict[str, str]:
        code_verifier = generate_code_verifier()
        session[self.session_key("code_verifier")] = code_verifier

        return {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.callback_url,
            "scope": self.scope,
            "state": state,
            "code_challenge": generate_code_challenge(code_verifier),
            "code_challenge_method": "S256",
        }

    async def fetch_identity(
        self,
        code: str,
        payload: Mapping[str, Any],
        session: MutableMapping[str, Any],
    ) -> ProviderIdentity:
        code_verifier = session.pop(self.session_key("code_verifier"), None)
        if not code_verifier:
            raise ProviderAuthError("Google login has no PKCE verifier in session")

        async with self.http_client() as client:
            token_response = await client.post(
                self.token_endpoint,
                data={
                    "grant_type": "authorization_code",
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "code": code,
                    "redirect_uri": self.config.callback_url,
                    "code_verifier": code_verifier,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            tokens = self.json_or_error(token_response, "Google token exchange")

            access_token = tokens.get("access_token")
            if not access_token:
                raise ProviderAuthError("Google token response missing access_token")

            userinfo_response = await client.get(
                self.userinfo_endpoint,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            userinfo = self.json_or_error(userinfo_response, "Google userinfo lookup")

        return ProviderIdentity(
            id=str(userinfo.get("sub") or ""),
            provider=self.name,
            display_name=userinfo.get("name"),
        )
