"""
FastAPI dependencies shared by the auth and profile routers.

Everything the routes need (settings, user store, provider registry) is
created once by the application factory and read back from ``app.state``.
"""

import logging
from typing import Dict

from fastapi import HTTPException, Request, status

from ..config import Settings
from ..store import UserStore
from .providers import OAuthProvider
from .session import TOKEN_COOKIE_NAME, SessionTokenError, verify_session_token

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_provider(request: Request, name: str) -> OAuthProvider:
    """
    Look up a registered provider adapter.

    Raises:
        HTTPException: 404 if the provider is unknown or not configured
    """
    providers: Dict[str, OAuthProvider] = request.app.state.providers
    provider = providers.get(name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unknown or unconfigured provider",
        )
    return provider


async def require_session_token(request: Request) -> str:
    """
    Session gate: reject the request unless it carries a valid ``token`` cookie.

    Only the signature is checked; the user row is not loaded.

    Usage in routes:
        @router.post("/protected")
        async def protected(user_id: str = Depends(require_session_token)):
            ...

    Returns:
        The user id embedded in the token

    Raises:
        HTTPException: 401 if the cookie is absent or does not verify
    """
    token = request.cookies.get(TOKEN_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    settings = get_app_settings(request)
    try:
        return verify_session_token(token, settings.JWT_SECRET, settings.JWT_ALGORITHM)
    except SessionTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
