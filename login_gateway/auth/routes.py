"""
Authentication routes for provider login, callback handling and logout.

Every provider follows the same authorization code flow:

    GET /auth/login/<provider>      -> 302 to the provider consent screen
    <provider> /auth/callback/...   -> 302 to /mypage with a 'token' cookie,
                                       or 302 to / when the login failed

The callback handler is the only place where the user store, the session
token and the framework session meet.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from ..store import StoreError
from .deps import get_app_settings, get_provider, get_user_store
from .providers import ProviderAuthError
from .session import create_session_token, set_session_cookie

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user"
FAILURE_REDIRECT = "/"


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(tags=["authentication"])


# =============================================================================
# Flow Helpers
# =============================================================================

def _begin_login(request: Request, provider_name: str) -> RedirectResponse:
    provider = get_provider(request, provider_name)
    authorization_url = provider.begin_login(request.session)

    logger.debug("Redirecting to provider consent screen", extra={"provider": provider_name})
    return RedirectResponse(url=authorization_url, status_code=302)


async def _complete_login(request: Request, provider_name: str) -> RedirectResponse:
    """
    Finish a login attempt once the provider has redirected back.

    1. Let the adapter validate the callback and produce an identity
    2. Create the user row if this is the first login
    3. Sign a session token for the identity
    4. Set it as the 'token' cookie and remember the user in the session
    5. Redirect to the landing page

    Any adapter or store failure sends the browser back to '/' without a cookie.
    """
    settings = get_app_settings(request)
    provider = get_provider(request, provider_name)

    try:
        payload = await provider.read_callback(request)
        identity = await provider.complete_login(payload, request.session)
    except ProviderAuthError as e:
        logger.warning(f"Login failed: {e}", extra={"provider": provider_name})
        return RedirectResponse(url=FAILURE_REDIRECT, status_code=302)

    store = get_user_store(request)
    try:
        first_login = await store.create_if_absent(identity.id, identity.provider)
    except StoreError as e:
        logger.error(
            f"Could not persist user after login: {e}",
            extra={"provider": provider_name, "user_id": identity.id},
            exc_info=True,
        )
        return RedirectResponse(url=FAILURE_REDIRECT, status_code=302)

    token = create_session_token(identity.id, settings.JWT_SECRET, settings.JWT_ALGORITHM)

    request.session[SESSION_USER_KEY] = {
        "id": identity.id,
        "provider": identity.provider,
        "displayName": identity.display_name,
        "first": first_login,
    }

    response = RedirectResponse(url=settings.LOGIN_SUCCESS_REDIRECT, status_code=302)
    set_session_cookie(
        response,
        token,
        max_age_seconds=settings.token_cookie_max_age_seconds,
        secure=settings.TOKEN_COOKIE_SECURE,
    )

    logger.info(
        "Login succeeded",
        extra={"provider": provider_name, "user_id": identity.id, "first_login": first_login},
    )
    return response


# =============================================================================
# Apple
# =============================================================================

@auth_router.get("/auth/login/apple", response_class=RedirectResponse)
async def login_apple(request: Request):
    return _begin_login(request, "apple")


@auth_router.post("/auth/callback/apple", response_class=RedirectResponse)
async def callback_apple(request: Request):
    """Apple posts the authorization code as a form (response_mode=form_post)."""
    return await _complete_login(request, "apple")


@auth_router.get("/auth/callback/apple", response_class=RedirectResponse)
async def callback_apple_get(request: Request):
    return RedirectResponse(url=get_app_settings(request).LOGIN_SUCCESS_REDIRECT, status_code=302)


# =============================================================================
# Naver
# =============================================================================

@auth_router.get("/auth/login/naver", response_class=RedirectResponse)
async def login_naver(request: Request):
    return _begin_login(request, "naver")


@auth_router.get("/auth/callback/naver", response_class=RedirectResponse)
async def callback_naver(request: Request):
    return await _complete_login(request, "naver")


# =============================================================================
# Google
# =============================================================================

@auth_router.get("/auth/login/google", response_class=RedirectResponse)
async def login_google(request: Request):
    return _begin_login(request, "google")


@auth_router.get("/auth/callback/google", response_class=RedirectResponse)
async def callback_google(request: Request):
    return await _complete_login(request, "google")


# =============================================================================
# Logout
# =============================================================================

@auth_router.get("/logout", response_class=RedirectResponse)
async def logout(request: Request):
    """
    Forget the logged-in user held in the framework session.

    The 'token' cookie is left in place; it stays valid until it expires.
    """
    request.session.pop(SESSION_USER_KEY, None)
    return RedirectResponse(url="/", status_code=302)
