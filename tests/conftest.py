# tests/conftest.py
import asyncio
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="receiptvault-tests-")
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}"
os.environ["CLIENT_URL"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

import database
import main
from services import drive_service
from fakes import FakeDrive


async def _reset_database():
    async with database.engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)


@pytest.fixture
def fake_drive(monkeypatch):
    drive = FakeDrive()
    monkeypatch.setattr(drive_service, "get_drive_service", lambda user, creds=None: drive)
    return drive


@pytest.fixture
def client(fake_drive):
    asyncio.run(_reset_database())
    with TestClient(main.app) as test_client:
        yield test_client


@pytest.fixture
def sign_in(monkeypatch):
    """Stubs the Google exchange so /auth/callback signs in the given identity."""
    def configure(sub="google-jane", email="jane@x.com", name="Jane Doe", refresh_token="refresh-1"):
        async def fake_fetch_token(code):
            token = {"access_token": f"access-{sub}", "expires_in": 3600}
            if refresh_token:
                token["refresh_token"] = refresh_token
            return token

        async def fake_fetch_user_info(token):
            return {"sub": sub, "email": email, "name": name, "picture": f"https://example.com/{sub}.png"}

        monkeypatch.setattr(main, "fetch_token", fake_fetch_token)
        monkeypatch.setattr(main, "fetch_user_info", fake_fetch_user_info)
    return configure


@pytest.fixture
def login(client, sign_in):
    def _login(**identity):
        sign_in(**identity)
        response = client.get("/auth/callback", params={"code": "test-code"}, follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/"
        return client.get("/api/auth/user").json()
    return _login
