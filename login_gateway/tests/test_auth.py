"""
Tests for the login, callback and logout routes.

Run with: pytest login_gateway/tests/test_auth.py -v
"""

import logging
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from login_gateway.auth.session import TOKEN_COOKIE_NAME, verify_session_token
from login_gateway.main import create_app
from login_gateway.store import StoreError

from .conftest import PROVIDERS, TEST_JWT_SECRET, login, read_rows, start_login


class TestLoginRedirect:
    @pytest.mark.parametrize("provider", PROVIDERS)
    def test_redirects_to_consent_screen(self, client, provider):
        response = client.get(f"/auth/login/{provider}", follow_redirects=False)

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == "https://provider.test/authorize"
        assert parse_qs(location.query)["client_id"] == [f"{provider}-client"]

    def test_each_login_issues_fresh_state(self, client):
        assert start_login(client, "naver") != start_login(client, "naver")

    def test_login_sets_session_cookie(self, client):
        start_login(client, "google")
        assert "session" in client.cookies


class TestCallbackSuccess:
    @pytest.mark.parametrize("provider", PROVIDERS)
    def test_first_login_creates_user_and_sets_token(self, client, db_path, provider):
        response = login(client, provider, f"{provider}-user")

        assert response.status_code == 302
        assert response.headers["location"] == "/mypage"

        token = client.cookies.get(TOKEN_COOKIE_NAME)
        assert token is not None
        assert verify_session_token(token, TEST_JWT_SECRET) == f"{provider}-user"
        assert read_rows(db_path) == [(f"{provider}-user", provider, None)]

    def test_token_cookie_attributes(self, client):
        response = login(client, "naver", "u1")

        token_cookie = [
            header for header in response.headers.get_list("set-cookie")
            if header.startswith(f"{TOKEN_COOKIE_NAME}=")
        ]
        assert len(token_cookie) == 1
        assert "HttpOnly" in token_cookie[0]
        assert "Max-Age=604800" in token_cookie[0]

    def test_session_remembers_user(self, client):
        login(client, "google", "g1")

        body = client.get("/api/auth").json()

        assert body["id"] == "g1"
        assert body["provider"] == "google"
        assert body["displayName"] == "User g1"
        assert body["first"] is True

    def test_repeat_login_leaves_row_unchanged(self, client, db_path, user_store):
        login(client, "naver", "u1")
        client.portal.call(user_store.set_profile_image, "u1", "cat.png")

        response = login(client, "naver", "u1")

        assert response.headers["location"] == "/mypage"
        assert read_rows(db_path) == [("u1", "naver", "cat.png")]
        assert client.get("/api/auth").json()["first"] is False

    def test_same_id_from_another_provider_keeps_original_row(self, client, db_path):
        login(client, "naver", "shared-id")
        login(client, "google", "shared-id")

        assert read_rows(db_path) == [("shared-id", "naver", None)]

    def test_racing_first_login_still_succeeds(self, client, db_path, user_store, monkeypatch):
        """Row inserted between the existence check and the insert."""
        login(client, "apple", "racer")
        client.cookies.clear()

        async def stale_get(user_id):
            return None

        monkeypatch.setattr(user_store, "get", stale_get)
        response = login(client, "apple", "racer")

        assert response.headers["location"] == "/mypage"
        assert verify_session_token(client.cookies[TOKEN_COOKIE_NAME], TEST_JWT_SECRET) == "racer"
        assert read_rows(db_path) == [("racer", "apple", None)]

    def test_two_browsers_same_user(self, app, client, db_path):
        login(client, "google", "shared")
        other_browser = TestClient(app)

        response = login(other_browser, "google", "shared")

        assert response.headers["location"] == "/mypage"
        assert other_browser.cookies[TOKEN_COOKIE_NAME] == client.cookies[TOKEN_COOKIE_NAME]
        assert len(read_rows(db_path)) == 1


class TestCallbackFailure:
    def test_provider_rejection_redirects_home(self, client, db_path):
        response = login(client, "naver", "rejected")

        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert TOKEN_COOKIE_NAME not in client.cookies
        assert read_rows(db_path) == []

    def test_state_mismatch_redirects_home(self, client, providers, db_path):
        start_login(client, "google")

        response = client.get(
            "/auth/callback/google",
            params={"code": "g1", "state": "forged"},
            follow_redirects=False,
        )

        assert response.headers["location"] == "/"
        assert providers["google"].exchanged_codes == []
        assert read_rows(db_path) == []

    def test_callback_without_login(self, client):
        response = client.get(
            "/auth/callback/naver",
            params={"code": "u1", "state": "whatever"},
            follow_redirects=False,
        )

        assert response.headers["location"] == "/"
        assert TOKEN_COOKIE_NAME not in client.cookies

    def test_provider_error_param(self, client):
        state = start_login(client, "naver")

        response = client.get(
            "/auth/callback/naver",
            params={"error": "access_denied", "state": state},
            follow_redirects=False,
        )

        assert response.headers["location"] == "/"

    def test_replayed_callback_is_rejected(self, client):
        state = start_login(client, "naver")
        params = {"code": "u1", "state": state}

        first = client.get("/auth/callback/naver", params=params, follow_redirects=False)
        client.cookies.delete(TOKEN_COOKIE_NAME)
        second = client.get("/auth/callback/naver", params=params, follow_redirects=False)

        assert first.headers["location"] == "/mypage"
        assert second.headers["location"] == "/"
        assert TOKEN_COOKIE_NAME not in client.cookies

    def test_store_failure_redirects_home_without_cookie(self, client, user_store, monkeypatch):
        async def broken_create(user_id, provider):
            raise StoreError("disk I/O error")

        monkeypatch.setattr(user_store, "create_if_absent", broken_create)

        response = login(client, "google", "g1")

        assert response.headers["location"] == "/"
        assert TOKEN_COOKIE_NAME not in client.cookies
        assert client.get("/api/auth").json() == {"status": 401}


class TestProviderRegistration:
    @pytest.fixture
    def naver_only_client(self, settings, providers, user_store):
        app = create_app(settings, providers={"naver": providers["naver"]}, user_store=user_store)
        with TestClient(app) as test_client:
            yield test_client

    def test_unconfigured_provider_login_is_404(self, naver_only_client):
        response = naver_only_client.get("/auth/login/google", follow_redirects=False)
        assert response.status_code == 404

    def test_unconfigured_provider_callback_is_404(self, naver_only_client):
        response = naver_only_client.post(
            "/auth/callback/apple",
            data={"code": "c", "state": "s"},
            follow_redirects=False,
        )
        assert response.status_code == 404

    def test_configured_provider_still_works(self, naver_only_client):
        assert login(naver_only_client, "naver", "u1").headers["location"] == "/mypage"

    def test_health_lists_enabled_providers(self, naver_only_client):
        body = naver_only_client.get("/health").json()

        assert body["status"] == "ok"
        assert body["providers"] == ["naver"]


class TestAppleGetCallback:
    def test_redirects_to_landing_page(self, client):
        response = client.get("/auth/callback/apple", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/mypage"
        assert TOKEN_COOKIE_NAME not in client.cookies


class TestLogout:
    def test_logout_forgets_session_user(self, client):
        login(client, "naver", "u1")

        response = client.get("/logout", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert client.get("/api/auth").json() == {"status": 401}

    def test_logout_keeps_token_cookie(self, client):
        login(client, "naver", "u1")
        client.get("/logout", follow_redirects=False)

        response = client.post("/api/profile/set", json={"clientId": "u1", "image": "a.png"})

        assert response.status_code == 200

    def test_logout_without_login(self, client):
        response = client.get("/logout", follow_redirects=False)
        assert response.headers["location"] == "/"


class TestCrossSiteSessionCookie:
    @pytest.fixture
    def apple_settings(self, settings):
        return settings.model_copy(
            update={"SESSION_COOKIE_SAME_SITE": "none", "SESSION_COOKIE_HTTPS_ONLY": True}
        )

    def test_login_session_cookie_survives_cross_site_post(self, apple_settings, providers, user_store):
        app = create_app(apple_settings, providers=providers, user_store=user_store)

        with TestClient(app, base_url="https://testserver") as test_client:
            response = test_client.get("/auth/login/apple", follow_redirects=False)

        session_cookie = [
            header for header in response.headers.get_list("set-cookie")
            if header.startswith("session=")
        ]
        assert len(session_cookie) == 1
        assert "samesite=none" in session_cookie[0].lower()
        assert "secure" in session_cookie[0].lower()

    def test_apple_round_trip_over_https(self, apple_settings, providers, user_store):
        app = create_app(apple_settings, providers=providers, user_store=user_store)

        with TestClient(app, base_url="https://testserver") as test_client:
            response = login(test_client, "apple", "a1")

        assert response.headers["location"] == "/mypage"


class TestStartupReport:
    def test_injected_providers_count_as_enabled(self, app, caplog):
        with caplog.at_level(logging.WARNING, logger="login_gateway.main"):
            with TestClient(app):
                pass

        assert not any("No OAuth provider" in record.getMessage() for record in caplog.records)

    def test_no_providers_is_reported(self, settings, user_store, caplog):
        app = create_app(settings, providers={}, user_store=user_store)

        with caplog.at_level(logging.WARNING, logger="login_gateway.main"):
            with TestClient(app):
                pass

        assert any("No OAuth provider" in record.getMessage() for record in caplog.records)


class TestUnhandledErrors:
    def test_unexpected_exception_returns_500_envelope(self, app, providers):
        async def explode(request):
            raise RuntimeError("boom")

        providers["naver"].read_callback = explode

        with TestClient(app, raise_server_exceptions=False) as test_client:
            state = start_login(test_client, "naver")
            response = test_client.get(
                "/auth/callback/naver",
                params={"code": "u1", "state": state},
                follow_redirects=False,
            )

        assert response.status_code == 500
        assert response.json()["error"] == "internal_server_error"
