"""
Profile Routes
==============

Read the logged-in user's identity and profile image, and set a profile image.

Endpoints:
----------
- GET  /api/auth:         current user from the framework session
- POST /api/profile/set:  set a user's profile image (requires 'token' cookie)
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from ..auth.deps import get_user_store, require_session_token
from ..auth.routes import SESSION_USER_KEY
from ..models import ProfileImageRequest
from ..store import StoreError

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_IMAGE = "default"

profile_router = APIRouter(tags=["profile"])


async def _read_profile_request(request: Request) -> ProfileImageRequest:
    try:
        payload = await request.json()
    except ValueError:
        raise RequestValidationError([{
            "type": "json_invalid",
            "loc": ("body",),
            "msg": "JSON decode error",
            "input": {},
        }])

    try:
        return ProfileImageRequest.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False), body=payload)


@profile_router.post(
    "/api/profile/set",
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": ProfileImageRequest.model_json_schema()}},
            "required": True,
        }
    },
)
async def set_profile_image(
    request: Request,
    user_id: str = Depends(require_session_token),
):
    """
    Set the profile image of ``clientId``.

    The body is parsed only after the session gate has passed, so a request
    without a valid token is always answered with 401.

    Any holder of a valid token may update any row; ``clientId`` is not
    compared with the token's own id.
    """
    body = await _read_profile_request(request)

    store = get_user_store(request)
    try:
        await store.set_profile_image(body.clientId, body.image)
    except StoreError as e:
        logger.error(f"Profile update failed: {e}", extra={"client_id": body.clientId})
        return PlainTextResponse("Not Found", status_code=404)

    if body.clientId != user_id:
        logger.info(
            "Profile image set for another user",
            extra={"client_id": body.clientId, "user_id": user_id},
        )
    return PlainTextResponse("OK", status_code=200)


@profile_router.get("/api/auth")
async def current_identity(request: Request):
    """
    Return the logged-in user and their profile image.

    Relies on the framework session, not on the 'token' cookie. Without a
    logged-in user the body is exactly {"status": 401}.
    """
    user = request.session.get(SESSION_USER_KEY)
    if not user:
        return {"status": 401}

    store = get_user_store(request)
    try:
        row = await store.get(user["id"])
    except StoreError as e:
        logger.error(f"Profile lookup failed: {e}", extra={"user_id": user.get("id")})
        return PlainTextResponse("Not Found", status_code=404)

    return JSONResponse({
        **user,
        "status": 200,
        "profile": row.profile if row and row.profile else DEFAULT_PROFILE_IMAGE,
    })
