from authlib.integrations.base_client import OAuthError
import pytest
from sqlalchemy.exc import SQLAlchemyError

import main


def test_auth_url(client, monkeypatch):
    async def fake_build():
        return "https://accounts.google.com/o/oauth2/v2/auth?client_id=test-client-id"
    monkeypatch.setattr(main, "build_authorization_url", fake_build)

    response = client.get("/api/auth/google")

    assert response.status_code == 200
    assert response.json() == {"authUrl": "https://accounts.google.com/o/oauth2/v2/auth?client_id=test-client-id"}


def test_callback_signs_in_and_creates_user(client, login):
    user = login()

    assert user["email"] == "jane@x.com"
    assert user["name"] == "Jane Doe"
    assert user["profilePicture"] == "https://example.com/google-jane.png"
    assert set(user) == {"id", "email", "name", "profilePicture"}


def test_second_sign_in_only_refreshes_credentials(client, login):
    first = login(name="Jane Doe")
    second = login(name="Jane Renamed", refresh_token=None)

    assert second["id"] == first["id"]
    assert second["name"] == "Jane Doe"


def _callback_location(client, code="test-code"):
    params = {"code": code} if code else {}
    response = client.get("/auth/callback", params=params, follow_redirects=False)
    assert response.status_code == 307
    return response.headers["location"]


def test_callback_without_code(client):
    assert _callback_location(client, code=None) == "/login?error=no_code"


def test_callback_without_access_token(client, monkeypatch):
    async def no_token(code):
        return {"token_type": "Bearer"}
    monkeypatch.setattr(main, "fetch_token", no_token)

    assert _callback_location(client) == "/login?error=token_failed"


def test_callback_with_incomplete_user_info(client, sign_in, monkeypatch):
    sign_in()

    async def nameless(token):
        return {"sub": "google-jane", "email": "jane@x.com"}
    monkeypatch.setattr(main, "fetch_user_info", nameless)

    assert _callback_location(client) == "/login?error=invalid_user"


@pytest.mark.parametrize("error, reason", [
    (OAuthError(error="invalid_grant", description="Bad Request"), "code_expired"),
    (OAuthError(error="invalid_request", description="Missing refresh token"), "reauth_needed"),
    (OAuthError(error="server_error"), "auth_failed"),
    (RuntimeError("network down"), "auth_failed"),
])
def test_callback_provider_errors(client, monkeypatch, error, reason):
    async def failing(code):
        raise error
    monkeypatch.setattr(main, "fetch_token", failing)

    assert _callback_location(client) == f"/login?error={reason}"


def test_json_callback(client, sign_in):
    sign_in()

    response = client.post("/api/auth/callback", json={"code": "test-code"})

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "jane@x.com"
    assert client.get("/api/auth/user").status_code == 200


def test_json_callback_requires_code(client):
    response = client.post("/api/auth/callback", json={})

    assert response.status_code == 400
    assert response.json() == {"message": "Authorization code is required"}


def test_json_callback_provider_failure(client, monkeypatch):
    async def failing(code):
        raise OAuthError(error="invalid_grant")
    monkeypatch.setattr(main, "fetch_token", failing)

    response = client.post("/api/auth/callback", json={"code": "stale"})

    assert response.status_code == 500
    assert response.json() == {"message": "Authentication failed"}


def test_current_user_requires_session(client):
    response = client.get("/api/auth/user")

    assert response.status_code == 401
    assert response.json() == {"message": "Not authenticated"}


def test_logout_clears_session(client, login):
    login()

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}
    assert client.get("/api/auth/user").status_code == 401


def test_json_callback_store_failure(client, sign_in, monkeypatch):
    sign_in()

    async def broken_store(session, user_info, token):
        raise SQLAlchemyError("database is locked")
    monkeypatch.setattr(main, "find_or_create_user", broken_store)

    response = client.post("/api/auth/callback", json={"code": "test-code"})

    assert response.status_code == 500
    assert response.json() == {"message": "Authentication failed"}
    assert client.get("/api/auth/user").status_code == 401
