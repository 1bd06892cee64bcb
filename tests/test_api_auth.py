"""
tests/test_api_auth.py -- Integration tests for the auth REST endpoints.

These tests exercise the full stack: FastAPI routing -> middleware -> slowapi
decorator -> AuthService -> response model serialization and the error
envelope handlers in api/main.py.

Coverage:
  - POST /login: 200 pair, 401 bad_credentials, 422 on blank fields, 429 lockout + Retry-After
  - POST /login: passwords are not whitespace-stripped
  - POST /refresh: rotation, reuse rejected with 401 invalid_refresh_token
  - POST /logout: with and without body/header, blacklists bearer
  - POST /logout-all: revokes every refresh token of the caller
  - GET /me: 200 with bearer, 401 without or with a bad token
  - require_role: 403 for the wrong role

Fixtures used (from conftest.py):
  - api_client: (client, service) -- TestClient over the real app
    Users: admin/admin-pass (DEVELOPER), stakeholder/stake-pass (STAKEHOLDER).
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi import APIRouter, Depends, FastAPI
from fastapi.testclient import TestClient

from auth.dependencies import require_role
from auth.models import Principal, User
from auth.passwords import hash_password
from auth.service import AuthService
from support import CLIENT_ADDRESS


@pytest.fixture(autouse=True)
def _reset_lockout(api_client: tuple[TestClient, AuthService]) -> Generator[None, None, None]:
    """Failed logins from one test must not lock out the next."""
    yield
    _client, service = api_client
    service.rate_limiter.reset_attempts(CLIENT_ADDRESS)


def _login(client: TestClient, username: str = "admin", password: str = "admin-pass"):
    return client.post("/api/v1/auth/login", json={"username": username, "password": password})


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestLogin:
    def test_login_success_returns_token_pair(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        resp = _login(client)
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["role"] == "DEVELOPER"
        assert data["expires_in"] == 3_600_000
        assert len(data["access_token"].split(".")) == 3
        assert data["refresh_token"]
        assert resp.headers["cache-control"] == "no-store"

    def test_login_bad_password_returns_401(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        resp = _login(client, password="wrong")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_login_unknown_user_returns_same_401(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        wrong_pw = _login(client, password="wrong").json()
        unknown = _login(client, username="ghost", password="wrong").json()
        assert wrong_pw == unknown

    @pytest.mark.parametrize(
        "body",
        [{"username": "", "password": "x"}, {"username": "admin", "password": ""}, {}],
    )
    def test_login_blank_fields_return_422(self, api_client: tuple[TestClient, AuthService], body: dict) -> None:
        client, _service = api_client
        resp = client.post("/api/v1/auth/login", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_five_failures_then_429(self, api_client: tuple[TestClient, AuthService]) -> None:
        """The sixth attempt is refused even with the right password."""
        client, _service = api_client
        for _ in range(5):
            assert _login(client, password="wrong").status_code == 401
        resp = _login(client)
        assert resp.status_code == 429
        assert resp.json()["error"]["code"] == "too_many_attempts"
        assert int(resp.headers["retry-after"]) > 0

    def test_successful_login_resets_failures(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        for _ in range(4):
            _login(client, password="wrong")
        assert _login(client).status_code == 200
        for _ in range(4):
            _login(client, password="wrong")
        assert _login(client).status_code == 200


class TestRefresh:
    def test_refresh_rotates(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        first = _login(client, "stakeholder", "stake-pass").json()

        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})
        assert resp.status_code == 200, resp.text
        second = resp.json()
        assert second["role"] == "STAKEHOLDER"
        assert second["refresh_token"] != first["refresh_token"]

        reuse = client.post("/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})
        assert reuse.status_code == 401
        assert reuse.json()["error"]["code"] == "invalid_refresh_token"

    def test_refresh_unknown_token(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        resp = client.post("/api/v1/auth/refresh", json={"refresh_token": "never-issued"})
        assert resp.status_code == 401

    def test_refresh_missing_body(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        assert client.post("/api/v1/auth/refresh", json={}).status_code == 422


class TestMeAndLogout:
    def test_me_with_bearer(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        token = _login(client).json()["access_token"]
        resp = client.get("/api/v1/auth/me", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json() == {"username": "admin", "role": "DEVELOPER"}

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer garbage"}, {"Authorization": "Basic abc"}])
    def test_me_unauthenticated(self, api_client: tuple[TestClient, AuthService], headers: dict) -> None:
        client, _service = api_client
        resp = client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_logout_blacklists_bearer_and_revokes_refresh(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        pair = _login(client).json()

        resp = client.post(
            "/api/v1/auth/logout",
            json={"refresh_token": pair["refresh_token"]},
            headers=_bearer(pair["access_token"]),
        )
        assert resp.status_code == 200

        assert client.get("/api/v1/auth/me", headers=_bearer(pair["access_token"])).status_code == 401
        refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": pair["refresh_token"]})
        assert refreshed.status_code == 401

    def test_logout_without_anything_succeeds(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        assert client.post("/api/v1/auth/logout").status_code == 200
        assert client.post("/api/v1/auth/logout", headers=_bearer("garbage")).status_code == 200

    def test_logout_all_revokes_every_session(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        sessions = [_login(client, "stakeholder", "stake-pass").json() for _ in range(2)]

        resp = client.post("/api/v1/auth/logout-all", headers=_bearer(sessions[0]["access_token"]))
        assert resp.status_code == 200

        for pair in sessions:
            refreshed = client.post("/api/v1/auth/refresh", json={"refresh_token": pair["refresh_token"]})
            assert refreshed.status_code == 401
        assert client.get("/api/v1/auth/me", headers=_bearer(sessions[0]["access_token"])).status_code == 401
        # Other access tokens stay valid until they expire.
        assert client.get("/api/v1/auth/me", headers=_bearer(sessions[1]["access_token"])).status_code == 200

    def test_logout_all_requires_auth(self, api_client: tuple[TestClient, AuthService]) -> None:
        client, _service = api_client
        assert client.post("/api/v1/auth/logout-all").status_code == 401


class TestRequireRole:
    """require_role() on a throwaway app sharing the test AuthService."""

    @pytest.fixture
    def guarded_client(self, api_client: tuple[TestClient, AuthService]) -> TestClient:
        _client, service = api_client
        router = APIRouter()

        @router.post("/tasks")
        def create_task(principal: Principal = Depends(require_role("DEVELOPER"))) -> dict:
            return {"created_by": principal.username}

        app = FastAPI()
        app.include_router(router)
        app.state.auth_service = service
        return TestClient(app)

    def test_allowed_role(self, api_client, guarded_client: TestClient) -> None:
        client, _service = api_client
        token = _login(client).json()["access_token"]
        resp = guarded_client.post("/tasks", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json() == {"created_by": "admin"}

    def test_wrong_role_forbidden(self, api_client, guarded_client: TestClient) -> None:
        client, _service = api_client
        token = _login(client, "stakeholder", "stake-pass").json()["access_token"]
        assert guarded_client.post("/tasks", headers=_bearer(token)).status_code == 403

    def test_no_token_unauthorized(self, guarded_client: TestClient) -> None:
        assert guarded_client.post("/tasks").status_code == 401


class TestPasswordWhitespace:
    def test_password_with_surrounding_spaces_logs_in(self, api_client: tuple[TestClient, AuthService]) -> None:
        """Passwords reach bcrypt unchanged; only the username is stripped."""
        client, service = api_client
        service.user_store.seed_users(
            [User(username="spacey", role="DEVELOPER", hashed_password=hash_password(" pw "))]
        )

        resp = _login(client, "  spacey ", " pw ")
        assert resp.status_code == 200, resp.text
        assert resp.json()["role"] == "DEVELOPER"
        assert _login(client, "spacey", "pw").status_code == 401
