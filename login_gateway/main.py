"""
FastAPI Login Gateway Application Factory
=========================================

Entry point for the service that federates browser login through Apple,
Naver and Google and hands out a first-party session token.

Routers:
    - /auth/*        : Provider login and callback flows
    - /logout        : Forget the logged-in user
    - /api/auth      : Current user and profile image
    - /api/profile/* : Profile image updates (requires 'token' cookie)
    - /health        : Health check endpoint

Environment Variables Required:
    - JWT_SECRET: Secret for signing session tokens
    - SESSION_SECRET: Secret for signing the framework session cookie
    - CALLBACK_URL: Public base URL used to build provider callback URLs
    - APPLE_CLIENT_ID / APPLE_TEAM_ID / APPLE_KEY_ID: Sign in with Apple
    - NAVER_CLIENT_ID / NAVER_CLIENT_SECRET: Naver Login
    - GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET: Google OAuth
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn login_gateway.main:create_app --factory --reload --host 0.0.0.0 --port 8080

    Production:
        uvicorn login_gateway.main:create_app --factory --host 0.0.0.0 --port 8080 --workers 4
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
import uvicorn

from . import __version__
from .auth import auth_router
from .auth.providers import OAuthProvider, build_providers
from .config import Settings, get_settings, validate_configuration
from .models import ErrorResponse, HealthResponse
from .profile import profile_router
from .store import UserStore

SESSION_COOKIE_NAME = "session"


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Report configuration problems
        - Create the user table if it does not exist

    Shutdown tasks:
        - Dispose of the database engine
    """
    settings: Settings = app.state.settings
    logger = logging.getLogger("login_gateway.main")

    status = validate_configuration(settings, app.state.providers)
    for error in status["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in status["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    await app.state.user_store.init_schema()

    logger.info(
        "Login gateway started",
        extra={
            "providers": ",".join(sorted(app.state.providers)),
            "version": __version__,
        }
    )

    yield

    logger.info("Shutting down login gateway")
    await app.state.user_store.close()


def create_app(
    settings: Optional[Settings] = None,
    providers: Optional[Dict[str, OAuthProvider]] = None,
    user_store: Optional[UserStore] = None,
) -> FastAPI:
    """
    Application factory function.

    Settings, provider adapters and the user store are created once here and
    shared through ``app.state``. Tests inject their own.

    Returns:
        FastAPI: Configured application instance
    """
    if settings is None:
        settings = get_settings()
        setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Login Gateway",
        description="Apple / Naver / Google login federation with first-party session tokens",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.providers = providers if providers is not None else build_providers(settings)
    app.state.user_store = user_store if user_store is not None else UserStore(settings.DATABASE_URL)

    origins = settings.allowed_origins_list
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        session_cookie=SESSION_COOKIE_NAME,
        same_site=settings.SESSION_COOKIE_SAME_SITE,
        https_only=settings.SESSION_COOKIE_HTTPS_ONLY,
    )

    app.include_router(auth_router)
    app.include_router(profile_router)

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service="login-gateway",
            version=__version__,
            providers=sorted(app.state.providers),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Log unhandled errors and return a standardized error response.
        """
        logger = logging.getLogger("login_gateway.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        body = ErrorResponse(
            error="internal_server_error",
            message="An unexpected error occurred",
            details={"detail": str(exc)} if settings.LOG_LEVEL == "DEBUG" else None,
        )
        return JSONResponse(status_code=500, content=body.model_dump(mode="json"))

    return app


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "login_gateway.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
