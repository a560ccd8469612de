# tests/test_auth.py — Session lifecycle: login, logout, check, token failures
from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, func

from auth import AuthService
from errors import (
    ValidationFailed, NotFound, TokenMissing, TokenInvalid, TokenExpired, SessionExpired,
)
from models import UserSession
from tests.conftest import get_auth_headers, cookie_header, cookie_cleared, set_cookie_headers


async def _session_count(db_session) -> int:
    result = await db_session.execute(select(func.count(UserSession.id)))
    return result.scalar()


@pytest.mark.asyncio
class TestAuthService:
    async def test_password_roundtrip(self):
        hashed = AuthService.hash_password("secret1")
        assert hashed != "secret1"
        assert AuthService.verify_password("secret1", hashed)
        assert not AuthService.verify_password("secret2", hashed)

    async def test_verify_against_garbage_hash(self):
        assert AuthService.verify_password("secret1", "not-a-bcrypt-hash") is False

    async def test_authenticate_opens_session(self, db_session, test_user):
        user, token = await AuthService.authenticate_user("alice@example.com", "secret1", db_session)
        assert user.id == test_user.id
        payload = AuthService.decode_session_token(token)
        assert set(payload) == {"sid", "iat", "exp"}
        assert await _session_count(db_session) == 1

    async def test_authenticate_unknown_email(self, db_session):
        with pytest.raises(ValidationFailed):
            await AuthService.authenticate_user("ghost@example.com", "secret1", db_session)
        assert await _session_count(db_session) == 0

    async def test_resolve_session(self, db_session, test_user):
        session_id = await AuthService.allocate_session(test_user, db_session)
        token = AuthService.create_session_token(session_id)
        user, sid = await AuthService.resolve_session(token, db_session)
        assert user.id == test_user.id
        assert sid == session_id

    async def test_resolve_missing_token(self, db_session):
        with pytest.raises(TokenMissing):
            await AuthService.resolve_session(None, db_session)

    async def test_resolve_tampered_token(self, db_session, test_user):
        session_id = await AuthService.allocate_session(test_user, db_session)
        token = AuthService.create_session_token(session_id)
        with pytest.raises(TokenInvalid):
            await AuthService.resolve_session(token[:-4] + "AAAA", db_session)

    async def test_resolve_expired_token(self, db_session, test_user):
        session_id = await AuthService.allocate_session(test_user, db_session)
        token = AuthService.create_session_token(session_id, expires_delta=timedelta(seconds=-5))
        with pytest.raises(TokenExpired):
            await AuthService.resolve_session(token, db_session)

    async def test_resolve_revoked_session(self, db_session, test_user):
        session_id = await AuthService.allocate_session(test_user, db_session)
        token = AuthService.create_session_token(session_id)
        await AuthService.revoke_session(session_id, db_session)
        with pytest.raises(SessionExpired):
            await AuthService.resolve_session(token, db_session)

    async def test_revoke_unknown_session(self, db_session):
        with pytest.raises(NotFound):
            await AuthService.revoke_session("no-such-session", db_session)

    async def test_revoke_user_sessions(self, db_session, test_user, other_user):
        await AuthService.allocate_session(test_user, db_session)
        await AuthService.allocate_session(test_user, db_session)
        await AuthService.allocate_session(other_user, db_session)
        assert await AuthService.revoke_user_sessions(test_user.id, db_session) == 2
        assert await _session_count(db_session) == 1


@pytest.mark.asyncio
class TestLogin:
    async def test_login_success(self, client: AsyncClient, test_user):
        res = await client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret1"})
        assert res.status_code == 200
        body = res.json()
        assert body["ok"] is True
        assert body["data"] == {
            "id": test_user.id,
            "email": "alice@example.com",
            "fullName": "Alice Example",
            "role": "USER",
        }
        cookie = next(h for h in set_cookie_headers(res) if h.startswith("jwt="))
        assert "httponly" in cookie.lower()
        assert "samesite=lax" in cookie.lower()
        assert "max-age=86400" in cookie.lower()

    async def test_login_wrong_password(self, client: AsyncClient, db_session, test_user):
        res = await client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong"})
        assert res.status_code == 400
        assert res.json() == {"ok": False, "message": "Invalid email or password."}
        assert not any(h.startswith("jwt=") and "max-age=0" not in h.lower() for h in set_cookie_headers(res))
        assert await _session_count(db_session) == 0

    async def test_login_unknown_email(self, client: AsyncClient):
        res = await client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret1"})
        assert res.status_code == 400
        assert res.json()["message"] == "Invalid email or password."

    async def test_login_missing_fields(self, client: AsyncClient):
        res = await client.post("/api/auth/login", json={"email": "alice@example.com"})
        assert res.status_code == 400
        assert res.json()["ok"] is False
        assert "password" in res.json()["message"]


@pytest.mark.asyncio
class TestSessionCheck:
    async def test_check_returns_user_and_refreshes_cookie(self, client: AsyncClient, db_session, test_user):
        headers = await get_auth_headers(db_session, test_user)
        res = await client.get("/api/auth/check", headers=headers)
        assert res.status_code == 200
        assert res.json()["data"]["email"] == "alice@example.com"
        refreshed = [h for h in set_cookie_headers(res) if h.startswith("jwt=")]
        assert refreshed and "max-age=86400" in refreshed[0].lower()

    async def test_refreshed_token_keeps_session(self, client: AsyncClient, db_session, test_user):
        headers = await get_auth_headers(db_session, test_user)
        res = await client.get("/api/auth/check", headers=headers)
        new_token = res.cookies.get("jwt")
        assert new_token
        assert AuthService.decode_session_token(new_token)["sid"] == \
            AuthService.decode_session_token(headers["Cookie"].split("=", 1)[1])["sid"]

        res = await client.get("/api/auth/check", headers=cookie_header(new_token))
        assert res.status_code == 200

    async def test_check_without_cookie(self, client: AsyncClient):
        client.cookies.clear()
        res = await client.get("/api/auth/check")
        assert res.status_code == 401
        assert res.json()["ok"] is False
        assert cookie_cleared(res)

    async def test_check_with_tampered_token(self, client: AsyncClient):
        res = await client.get("/api/auth/check", headers=cookie_header("not.a.token"))
        assert res.status_code == 401
        assert cookie_cleared(res)

    async def test_check_with_expired_token(self, client: AsyncClient, db_session, test_user):
        session_id = await AuthService.allocate_session(test_user, db_session)
        await db_session.commit()
        token = AuthService.create_session_token(session_id, expires_delta=timedelta(seconds=-5))
        res = await client.get("/api/auth/check", headers=cookie_header(token))
        assert res.status_code == 401
        assert res.json()["message"] == "Token expired."
        assert cookie_cleared(res)


@pytest.mark.asyncio
class TestLogout:
    async def test_logout_revokes_session(self, client: AsyncClient, db_session, test_user):
        headers = await get_auth_headers(db_session, test_user)
        res = await client.get("/api/auth/logout", headers=headers)
        assert res.status_code == 200
        assert cookie_cleared(res)
        assert not any(h.startswith("jwt=") and "max-age=0" not in h.lower() for h in set_cookie_headers(res))

        res = await client.get("/api/auth/check", headers=headers)
        assert res.status_code == 401
        assert res.json()["message"] == "Session has expired or was terminated."

    async def test_logout_requires_session(self, client: AsyncClient):
        client.cookies.clear()
        res = await client.get("/api/auth/logout")
        assert res.status_code == 401
