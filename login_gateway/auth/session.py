"""
Session Token Module
====================

Issues and verifies the first-party session token handed to the browser
after a successful provider login, and sets it as the ``token`` cookie.

The token is an HMAC-signed JWT whose only claim is ``{"id": <user id>}``.
It carries no ``exp``/``iat``: issuing is deterministic for a given secret and
id, and its lifetime is bounded by the cookie max-age alone.
"""

import logging
from typing import Any, Dict

import jwt
from jwt.exceptions import InvalidTokenError
from starlette.responses import Response

logger = logging.getLogger(__name__)

TOKEN_COOKIE_NAME = "token"
DEFAULT_ALGORITHM = "HS256"


# =============================================================================
# Exceptions
# =============================================================================

class SessionTokenError(Exception):
    """Token missing, malformed, tampered with, or signed with another secret."""
    pass


# =============================================================================
# Token Creation
# =============================================================================

def create_session_token(
    user_id: str,
    secret: str,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """
    Create a session token for ``user_id``.

    Args:
        user_id: Canonical provider subject identifier
        secret: Signing secret (JWT_SECRET)
        algorithm: HMAC algorithm

    Returns:
        Encoded JWT string

    Raises:
        SessionTokenError: If ``user_id`` is empty or signing fails

    Example:
        >>> token = create_session_token("000123.abc", secret)
        >>> verify_session_token(token, secret)
        '000123.abc'
    """
    if not user_id:
        raise SessionTokenError("Cannot issue a session token without a user id")

    try:
        token = jwt.encode({"id": user_id}, secret, algorithm=algorithm)
    except Exception as e:
        logger.error(f"Failed to create session token: {e}", exc_info=True)
        raise SessionTokenError(f"Failed to create session token: {str(e)}") from e

    logger.debug("Created session token", extra={"user_id": user_id})
    return token


# =============================================================================
# Token Verification
# =============================================================================

def decode_session_token(
    token: str,
    secret: str,
    algorithm: str = DEFAULT_ALGORITHM,
) -> Dict[str, Any]:
    """
    Verify a session token and return its claims.

    Raises:
        SessionTokenError: For every kind of failure
    """
    if not token:
        raise SessionTokenError("No session token provided")

    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["id"]},
        )
    except InvalidTokenError as e:
        logger.warning(f"Invalid session token: {e}")
        raise SessionTokenError(f"Invalid token: {str(e)}") from e

    if not isinstance(claims.get("id"), str) or not claims["id"]:
        raise SessionTokenError("Session token has no usable id claim")

    return claims


def verify_session_token(
    token: str,
    secret: str,
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """
    Verify a session token and return the user id it was issued for.

    Missing, malformed, tampered and wrong-secret tokens all raise the same
    SessionTokenError; callers treat every failure as unauthenticated.
    """
    return decode_session_token(token, secret, algorithm)["id"]


# =============================================================================
# Cookie Helpers
# =============================================================================

def set_session_cookie(
    response: Response,
    token: str,
    max_age_seconds: int,
    secure: bool = False,
) -> None:
    """Attach the session token as an HttpOnly ``token`` cookie."""
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        max_age=max_age_seconds,
        httponly=True,
        secure=secure,
        samesite="lax",
        path="/",
    )


__all__ = [
    "TOKEN_COOKIE_NAME",
    "SessionTokenError",
    "create_session_token",
    "decode_session_token",
    "verify_session_token",
    "set_session_cookie",
]
