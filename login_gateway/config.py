"""
Configuration module for the Login Gateway.

This module uses Pydantic Settings to load and validate environment variables
for the three OAuth providers (Apple, Naver, Google), session token signing,
the framework session cookie, the user database, and CORS settings.

Environment variables are loaded from .env file or system environment.
"""

import os
from functools import lru_cache
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PROVIDER_NAMES = ("apple", "naver", "google")


class OAuthProviderSettings(BaseModel):
    """
    Resolved OAuth client settings for a single identity provider.

    Built once from Settings at startup and handed to the matching provider
    adapter.
    """

    name: str
    client_id: str
    client_secret: Optional[str] = None
    callback_url: str

    # Sign in with Apple signs its client secret with a team key
    team_id: Optional[str] = None
    key_id: Optional[str] = None
    private_key_path: Optional[str] = None


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Provider credentials are optional: a provider is only registered when all
    of its credentials are present.
    """

    # =========================================================================
    # Callback Configuration
    # =========================================================================

    CALLBACK_URL: str = Field(
        default="http://localhost:8080",
        description="Public base URL of this service; /auth/callback/<provider> is appended",
        min_length=1,
    )

    LOGIN_SUCCESS_REDIRECT: str = Field(
        default="/mypage",
        description="Where the browser lands after a successful login",
    )

    # =========================================================================
    # Apple (Sign in with Apple)
    # =========================================================================

    APPLE_CLIENT_ID: Optional[str] = Field(None, description="Apple Services ID")
    APPLE_TEAM_ID: Optional[str] = Field(None, description="Apple developer team ID")
    APPLE_KEY_ID: Optional[str] = Field(None, description="Key ID of the Sign in with Apple private key")
    APPLE_PRIVATE_KEY_PATH: Optional[str] = Field(
        None,
        description="Path to the AuthKey_<KEY_ID>.p8 file (default: src/AuthKey_<KEY_ID>.p8)",
    )

    # =========================================================================
    # Naver
    # =========================================================================

    NAVER_CLIENT_ID: Optional[str] = Field(None, description="Naver application client ID")
    NAVER_CLIENT_SECRET: Optional[str] = Field(None, description="Naver application client secret")

    # =========================================================================
    # Google
    # =========================================================================

    GOOGLE_CLIENT_ID: Optional[str] = Field(None, description="Google OAuth client ID")
    GOOGLE_CLIENT_SECRET: Optional[str] = Field(None, description="Google OAuth client secret")

    # =========================================================================
    # Session Token Configuration
    # =========================================================================

    JWT_SECRET: str = Field(
        ...,
        description="Secret key for signing session tokens (must be cryptographically secure)",
        min_length=32,
    )

    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    TOKEN_COOKIE_MAX_AGE_DAYS: int = Field(
        default=7,
        description="Lifetime of the 'token' cookie in days",
        ge=1,
        le=365,
    )

    TOKEN_COOKIE_SECURE: bool = Field(
        default=False,
        description="Mark the 'token' cookie Secure (HTTPS only)",
    )

    # =========================================================================
    # Framework Session Configuration
    # =========================================================================

    SESSION_SECRET: str = Field(
        ...,
        description="Secret key for signing the framework session cookie",
        min_length=32,
    )

    SESSION_COOKIE_SAME_SITE: str = Field(
        default="lax",
        description="SameSite policy of the session cookie (lax, strict, none)",
    )

    SESSION_COOKIE_HTTPS_ONLY: bool = Field(
        default=False,
        description="Mark the session cookie Secure (HTTPS only)",
    )

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./src/database/user.db",
        description="SQLAlchemy async database URL for the user table",
    )

    # =========================================================================
    # Server / CORS / Logging
    # =========================================================================

    HOST: str = Field(default="0.0.0.0", description="Host to bind the server")

    PORT: int = Field(default=8080, description="Port to bind the server", ge=1, le=65535)

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    @property
    def token_cookie_max_age_seconds(self) -> int:
        return self.TOKEN_COOKIE_MAX_AGE_DAYS * 24 * 60 * 60

    def callback_url_for(self, provider: str) -> str:
        return f"{self.CALLBACK_URL.rstrip('/')}/auth/callback/{provider}"

    def apple_private_key_path(self) -> Optional[str]:
        if self.APPLE_PRIVATE_KEY_PATH:
            return self.APPLE_PRIVATE_KEY_PATH
        if not self.APPLE_KEY_ID:
            return None
        return os.path.join("src", f"AuthKey_{self.APPLE_KEY_ID}.p8")

    @property
    def oauth_providers(self) -> Dict[str, OAuthProviderSettings]:
        """
        Resolve per-provider OAuth settings for every fully configured provider.

        Returns:
            Mapping of provider name to its OAuthProviderSettings.
        """
        providers: Dict[str, OAuthProviderSettings] = {}

        if self.APPLE_CLIENT_ID and self.APPLE_TEAM_ID and self.APPLE_KEY_ID:
            providers["apple"] = OAuthProviderSettings(
                name="apple",
                client_id=self.APPLE_CLIENT_ID,
                callback_url=self.callback_url_for("apple"),
                team_id=self.APPLE_TEAM_ID,
                key_id=self.APPLE_KEY_ID,
                private_key_path=self.apple_private_key_path(),
            )

        if self.NAVER_CLIENT_ID and self.NAVER_CLIENT_SECRET:
            providers["naver"] = OAuthProviderSettings(
                name="naver",
                client_id=self.NAVER_CLIENT_ID,
                client_secret=self.NAVER_CLIENT_SECRET,
                callback_url=self.callback_url_for("naver"),
            )

        if self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET:
            providers["google"] = OAuthProviderSettings(
                name="google",
                client_id=self.GOOGLE_CLIENT_ID,
                client_secret=self.GOOGLE_CLIENT_SECRET,
                callback_url=self.callback_url_for("google"),
            )

        return providers

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """
        Validate JWT algorithm is one of the supported HMAC algorithms.

        Raises:
            ValueError: If algorithm is not supported
        """
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("SESSION_COOKIE_SAME_SITE")
    @classmethod
    def validate_same_site(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("lax", "strict", "none"):
            raise ValueError(f"SESSION_COOKIE_SAME_SITE must be lax, strict or none, got: {v}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return v

    @model_validator(mode="after")
    def validate_session_cookie_policy(self) -> "Settings":
        """
        Reject session cookie settings under which a login cannot complete.

        Browsers drop SameSite=None cookies that are not Secure, and Apple's
        form_post callback is a cross-site POST that only carries the session
        cookie (and with it the login state) when SameSite=None.

        Raises:
            ValueError: If the cookie policy is unusable for the enabled providers
        """
        if self.SESSION_COOKIE_SAME_SITE == "none" and not self.SESSION_COOKIE_HTTPS_ONLY:
            raise ValueError(
                "SESSION_COOKIE_SAME_SITE=none requires SESSION_COOKIE_HTTPS_ONLY=true"
            )

        if "apple" in self.oauth_providers and self.SESSION_COOKIE_SAME_SITE != "none":
            raise ValueError(
                "Sign in with Apple posts its callback cross-site; set "
                "SESSION_COOKIE_SAME_SITE=none and SESSION_COOKIE_HTTPS_ONLY=true"
            )

        return self


# =============================================================================
# Settings Loader
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a cached Settings instance.

    The application factory calls this once and passes the result along
    explicitly; nothing else in the package reads settings at import time.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If required environment variables are missing
                        or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(
    settings: Settings,
    enabled_providers: Optional[Iterable[str]] = None,
) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Args:
        settings: Loaded settings
        enabled_providers: Names of the providers actually registered with the
            application; defaults to those configured in ``settings``

    Returns:
        Dictionary with validation status and any warnings.

    Example:
        >>> status = validate_configuration(get_settings())
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    errors = []
    warnings = []

    configured = settings.oauth_providers
    providers = set(configured if enabled_providers is None else enabled_providers)
    if not providers:
        errors.append("No OAuth provider is enabled")

    for name in PROVIDER_NAMES:
        if name not in providers:
            warnings.append(f"{name} login is disabled (credentials missing)")

    apple = configured.get("apple") if "apple" in providers else None
    if apple and apple.private_key_path and not os.path.exists(apple.private_key_path):
        errors.append(f"Apple private key not found at {apple.private_key_path}")

    if settings.JWT_SECRET == settings.SESSION_SECRET:
        warnings.append("JWT_SECRET and SESSION_SECRET are identical")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "enabled_providers": sorted(providers),
        "token_cookie_max_age_days": settings.TOKEN_COOKIE_MAX_AGE_DAYS,
    }


if __name__ == "__main__":
    """
    Validate your .env configuration:
        python -m login_gateway.config
    """
    try:
        config = get_settings()
    except Exception as e:
        print(f"\n✗ Configuration error: {e}")
        print("\nRequired variables: JWT_SECRET, SESSION_SECRET")
        raise SystemExit(1)

    print("=" * 80)
    print("LOGIN GATEWAY CONFIGURATION")
    print("=" * 80)
    print(f"  Callback base:  {config.CALLBACK_URL}")
    print(f"  Database:       {config.DATABASE_URL}")
    print(f"  JWT Algorithm:  {config.JWT_ALGORITHM}")
    print(f"  Cookie max-age: {config.TOKEN_COOKIE_MAX_AGE_DAYS} days")

    status = validate_configuration(config)
    print(f"  Providers:      {', '.join(status['enabled_providers']) or '(none)'}")

    if status["valid"]:
        print("\n✓ All critical checks passed!")
    else:
        print("\n✗ Configuration errors found:")
        for error in status["errors"]:
            print(f"  - {error}")

    if status["warnings"]:
        print("\n⚠ Warnings:")
        for warning in status["warnings"]:
            print(f"  - {warning}")
