"""Naver Login adapter."""

from typing import Any, Dict, Mapping, MutableMapping

from .base import OAuthProvider, ProviderAuthError, ProviderIdentity


class NaverProvider(OAuthProvider):
    name = "naver"
    authorize_endpoint = "https://nid.naver.com/oauth2.0/authorize"
    token_endpoint = "https://nid.naver.com/oauth2.0/token"
    profile_endpoint = "https://openapi.naver.com/v1/nid/me"

    def authorization_params(
        self, state: str, session: MutableMapping[str, Any]
    ) -> Dict[str, str]:
        return {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.callback_url,
            "state": state,
        }

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
                    "client_secret": self.config.client_secret,
                    "code": code,
                    "state": payload.get("state", ""),
                },
            )
            tokens = self.json_or_error(token_response, "Naver token exchange")

            access_token = tokens.get("access_token")
            if not access_token:
                raise ProviderAuthError("Naver token response missing access_token")

            profile_response = await client.get(
                self.profile_endpoint,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            body = self.json_or_error(profile_response, "Naver profile lookup")

        # {"resultcode": "00", "message": "success", "response": {"id": ..., ...}}
        if body.get("resultcode") not in (None, "00"):
            raise ProviderAuthError(f"Naver profile lookup failed: {body.get('message')}")

        profile = body.get("response") or {}
        return ProviderIdentity(
            id=str(profile.get("id") or ""),
            provider=self.name,
            display_name=profile.get("nickname") or profile.get("name"),
        )
