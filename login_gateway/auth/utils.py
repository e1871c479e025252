"""
Authentication utilities for provider ID token verification and PKCE.

This module handles:
- Fetching and caching a provider's JWKS (JSON Web Key Set)
- Verifying RS256 ID tokens against that key set
- PKCE code verifier / challenge generation
"""

import base64
import hashlib
import secrets
import time
from typing import Any, Callable, Dict, Optional

import httpx
from jose import JWTError, jwk, jwt


# =============================================================================
# JWKS Cache
# =============================================================================

class JWKSCache:
    """
    Time-bounded cache of one provider's JWKS document.

    Each provider adapter owns its own instance.
    """

    def __init__(
        self,
        jwks_uri: str,
        ttl_seconds: int = 3600,
        http_client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    ):
        self.jwks_uri = jwks_uri
        self.ttl_seconds = ttl_seconds
        self._http_client_factory = http_client_factory
        self._keys: Optional[Dict[str, Any]] = None
        self._fetched_at: float = 0.0

    async def get(self, force_refresh: bool = False) -> Dict[str, Any]:
        """
        Fetch the JWKS with caching.

        Args:
            force_refresh: If True, bypass cache and fetch fresh JWKS

        Returns:
            JWKS document containing keys

        Raises:
            httpx.HTTPError: If JWKS endpoint is unreachable
            ValueError: If response is invalid
        """
        now = time.time()
        if not force_refresh and self._keys and (now - self._fetched_at) < self.ttl_seconds:
            return self._keys

        async with self._http_client_factory(timeout=10.0) as client:
            response = await client.get(self.jwks_uri)
            response.raise_for_status()
            jwks_data = response.json()

        if not isinstance(jwks_data, dict) or "keys" not in jwks_data:
            raise ValueError("Invalid JWKS response: missing 'keys' field")

        self._keys = jwks_data
        self._fetched_at = now
        return jwks_data


def get_signing_key(token: str, jwks: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Extract the public key from JWKS that matches the token's kid.

    Returns:
        Matching key from JWKS, or None if not found

    Raises:
        JWTError: If token header is malformed or has no kid
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise JWTError(f"Failed to decode token header: {e}")

    kid = unverified_header.get("kid")
    if not kid:
        raise JWTError("Token header missing 'kid' (Key ID)")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    return None


async def verify_id_token(
    id_token: str,
    jwks_cache: JWKSCache,
    *,
    audience: str,
    issuer: str,
) -> Dict[str, Any]:
    """
    Verify and decode a provider ID token.

    1. Finds the signing key in the provider's JWKS (refreshing once on a miss)
    2. Verifies the RS256 signature
    3. Validates iss, aud, exp, iat
    4. Returns the decoded claims

    Raises:
        JWTError: If token is invalid, expired, or signature doesn't match
        httpx.HTTPError: If the JWKS endpoint is unreachable
    """
    jwks = await jwks_cache.get()

    signing_key = get_signing_key(id_token, jwks)
    if not signing_key:
        # Keys may have rotated
        jwks = await jwks_cache.get(force_refresh=True)
        signing_key = get_signing_key(id_token, jwks)

        if not signing_key:
            raise JWTError("Unable to find matching signing key in JWKS")

    try:
        public_key = jwk.construct(signing_key, algorithm="RS256")
    except Exception as e:
        raise JWTError(f"Failed to construct public key from JWK: {e}")

    try:
        claims = jwt.decode(
            id_token,
            public_key.to_pem().decode("utf-8"),
            algorithms=["RS256"],
            audience=audience,
            issuer=issuer,
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_iat": True,
                "verify_exp": True,
                "verify_iss": True,
                "verify_sub": True,
                "verify_at_hash": False,
                "leeway": 10,  # seconds of clock skew
            },
        )
    except jwt.ExpiredSignatureError:
        raise JWTError("ID token has expired")
    except jwt.JWTClaimsError as e:
        raise JWTError(f"Invalid token claims: {e}")

    return claims


# =============================================================================
# PKCE Helpers
# =============================================================================

def generate_code_verifier() -> str:
    """
    Generate a cryptographically random code verifier for PKCE.

    Returns:
        Base64-URL-encoded random string (43 characters)
    """
    verifier_bytes = secrets.token_bytes(32)
    return base64.urlsafe_b64encode(verifier_bytes).decode("utf-8").rstrip("=")


def generate_code_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for ``verifier``."""
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")
