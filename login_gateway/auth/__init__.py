"""
Authentication Package

This package federates login through Apple, Naver and Google and issues the
first-party session token.

Modules:
- routes: login, callback and logout endpoints (/auth/*, /logout)
- providers: one adapter per identity provider
- session: session token issuing/verification and the 'token' cookie
- deps: FastAPI dependencies, including the session gate
- utils: JWKS caching, ID token verification and PKCE helpers

The authentication flow:
1. Browser opens /auth/login/<provider>
2. User authenticates with the provider
3. Provider redirects (or posts) back to /auth/callback/<provider>
4. Gateway records the user, sets the 'token' cookie, redirects to /mypage
5. Protected endpoints accept the request only with a valid 'token' cookie
"""

from .routes import auth_router

__all__ = [
    "auth_router",
]
