"""
Shared fixtures for the login gateway tests.

HTTP flows run through FastAPI's TestClient against a temporary SQLite
database. Real provider adapters are replaced by FakeProvider, whose
callback ``code`` doubles as the subject id it returns.
"""

import sqlite3
from typing import Any, Dict, List, Mapping, MutableMapping, Tuple
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from login_gateway.auth.providers import OAuthProvider, ProviderAuthError, ProviderIdentity
from login_gateway.config import OAuthProviderSettings, Settings
from login_gateway.main import create_app
from login_gateway.store import UserStore


TEST_JWT_SECRET = "test-jwt-secret-0123456789abcdef0123"
TEST_SESSION_SECRET = "test-session-secret-0123456789abcdef"
PROVIDERS = ("apple", "naver", "google")


class FakeProvider(OAuthProvider):
    """Provider double: ``code=rejected`` fails, any other code is the user id."""

    authorize_endpoint = "https://provider.test/authorize"

    def __init__(self, name: str):
        super().__init__(
            OAuthProviderSettings(
                name=name,
                client_id=f"{name}-client",
                callback_url=f"http://testserver/auth/callback/{name}",
            )
        )
        self.name = name
        self.exchanged_codes: List[str] = []

    def authorization_params(self, state: str, session: MutableMapping[str, Any]) -> Dict[str, str]:
        return {"client_id": self.config.client_id, "state": state}

    async def read_callback(self, request: Request) -> Dict[str, Any]:
        if request.method == "POST":
            form = await request.form()
            return dict(form)
        return dict(request.query_params)

    async def fetch_identity(
        self,
        code: str,
        payload: Mapping[str, Any],
        session: MutableMapping[str, Any],
    ) -> ProviderIdentity:
        self.exchanged_codes.append(code)
        if code == "rejected":
            raise ProviderAuthError("rejected by provider")
        return ProviderIdentity(id=code, provider=self.name, display_name=f"User {code}")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "user.db"


@pytest.fixture
def settings(db_path):
    """Settings for tests; never reads a .env file."""
    return Settings(
        _env_file=None,
        JWT_SECRET=TEST_JWT_SECRET,
        SESSION_SECRET=TEST_SESSION_SECRET,
        DATABASE_URL=f"sqlite+aiosqlite:///{db_path}",
        CALLBACK_URL="http://testserver",
    )


@pytest.fixture
def providers():
    return {name: FakeProvider(name) for name in PROVIDERS}


@pytest.fixture
def user_store(settings):
    return UserStore(settings.DATABASE_URL)


@pytest.fixture
def app(settings, providers, user_store):
    return create_app(settings, providers=providers, user_store=user_store)


@pytest.fixture
def client(app):
    """TestClient with lifespan running (creates the user table)."""
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Helpers
# ============================================================================

def start_login(client: TestClient, provider: str) -> str:
    """Begin a login and return the state the gateway issued."""
    response = client.get(f"/auth/login/{provider}", follow_redirects=False)
    assert response.status_code == 302
    query = parse_qs(urlparse(response.headers["location"]).query)
    return query["state"][0]


def login(client: TestClient, provider: str, code: str):
    """Run a full login round trip and return the callback response."""
    state = start_login(client, provider)
    if provider == "apple":
        return client.post(
            "/auth/callback/apple",
            data={"code": code, "state": state},
            follow_redirects=False,
        )
    return client.get(
        f"/auth/callback/{provider}",
        params={"code": code, "state": state},
        follow_redirects=False,
    )


def read_rows(db_path) -> List[Tuple[str, str, Any]]:
    """All rows of the user table, read straight from the SQLite file."""
    conn = sqlite3.connect(str(db_path))
    try:
        return conn.execute('SELECT id, provider, profile FROM "user" ORDER BY id').fetchall()
    finally:
        conn.close()
