"""Auth API tests — registration, login, refresh rotation, logout.

Learn: Tests cover:
1. Registration: required fields, avatar requirement, duplicates, upload failure
2. Login by username or email, wrong password, unknown user
3. Refresh rotation: a refresh token works exactly once
4. Single session slot: a second login invalidates the first
5. Logout clears the slot and both cookies
"""

from pathlib import Path

import pytest
from sqlalchemy import func, select

from conftest import cookie_header, register_user
from purposelog.auth.password import verify_password
from purposelog.db.models import User
from purposelog.services.user_store import UserStore


async def _count_users(session_factory) -> int:
    async with session_factory() as db:
        return await db.scalar(select(func.count()).select_from(User))


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client, storage):
    """Register creates the user, stores the avatar, and sets both cookies."""
    r = await register_user(client)
    assert r.status_code == 201

    body = r.json()
    assert body["success"] is True
    assert body["message"] == "User registered and logged in successfully"

    user = body["data"]["user"]
    assert user["username"] == "amy"
    assert user["email"] == "amy@x.com"
    assert user["fullName"] == "Amy Pond"
    assert user["role"] == "user"
    assert user["avatar"]["url"].startswith("https://")
    assert user["avatar"]["storageKey"] in storage.assets
    assert "createdAt" in user and "updatedAt" in user

    assert r.cookies.get("accessToken")
    assert r.cookies.get("refreshToken")


@pytest.mark.asyncio
async def test_register_response_never_exposes_secrets(client):
    r = await register_user(client)
    user = r.json()["data"]["user"]
    for key in ("password", "passwordHash", "refreshToken", "refreshTokenDigest"):
        assert key not in user
    assert "secret1" not in r.text


@pytest.mark.asyncio
async def test_register_cookies_are_http_only(client):
    r = await register_user(client)
    set_cookies = r.headers.get_list("set-cookie")
    assert len(set_cookies) == 2
    for header in set_cookies:
        assert "HttpOnly" in header
        assert "SameSite=lax" in header
        # Not secure outside production
        assert "; Secure" not in header


@pytest.mark.asyncio
async def test_register_stores_bcrypt_hash(client, session_factory):
    await register_user(client, password="secret1")

    async with session_factory() as db:
        user = (await db.execute(select(User))).scalars().one()
    assert user.password_hash != "secret1"
    assert verify_password("secret1", user.password_hash)
    assert user.refresh_token_digest is not None


@pytest.mark.asyncio
async def test_register_normalizes_identifiers(client):
    r = await register_user(client, username="  AmyP ", email="Amy@X.COM")
    user = r.json()["data"]["user"]
    assert user["username"] == "amyp"
    assert user["email"] == "amy@x.com"


@pytest.mark.asyncio
async def test_register_missing_field(client):
    r = await register_user(client, full_name="   ")
    assert r.status_code == 400
    assert r.json() == {"success": False, "message": "All fields are required"}


@pytest.mark.asyncio
async def test_register_requires_avatar(client, session_factory):
    r = await register_user(client, with_avatar=False)
    assert r.status_code == 400
    assert r.json()["message"] == "Avatar is required"
    assert await _count_users(session_factory) == 0


@pytest.mark.asyncio
async def test_register_short_password(client, storage):
    r = await register_user(client, password="abc")
    assert r.status_code == 400
    assert r.json()["message"] == "Password must be at least 6 characters"
    # Rejected before anything reached storage
    assert storage.assets == {}


@pytest.mark.asyncio
async def test_register_duplicate_username(client, session_factory):
    r1 = await register_user(client)
    assert r1.status_code == 201

    r2 = await register_user(client, email="other@x.com")
    assert r2.status_code == 400
    assert r2.json()["message"] == "Username or Email is already in use"
    assert await _count_users(session_factory) == 1


@pytest.mark.asyncio
async def test_register_duplicate_email_case_insensitive(client, session_factory):
    await register_user(client)
    r = await register_user(client, username="rory", email="AMY@x.com")
    assert r.status_code == 400
    assert await _count_users(session_factory) == 1


@pytest.mark.asyncio
async def test_register_race_past_precheck_is_conflict(
    client, storage, session_factory, monkeypatch
):
    """The unique index catches what the pre-check missed.

    With the lookup blinded, the duplicate reaches the INSERT; the
    IntegrityError becomes the same Conflict and the avatar that was
    already uploaded is discarded.
    """
    first = await register_user(client)
    first_key = first.json()["data"]["user"]["avatar"]["storageKey"]

    async def no_conflict(self, username, email, exclude_id=None):
        return None

    monkeypatch.setattr(UserStore, "find_conflict", no_conflict)

    r = await register_user(client, full_name="Another Amy")
    assert r.status_code == 400
    assert r.json()["message"] == "Username or Email is already in use"
    assert "accessToken" not in r.cookies

    assert len(storage.deleted) == 1
    assert storage.deleted[0] != first_key
    assert list(storage.assets) == [first_key]
    assert await _count_users(session_factory) == 1


@pytest.mark.asyncio
async def test_register_upload_failure_creates_nothing(client, storage, session_factory):
    """No avatar in storage → no user row."""
    storage.fail_uploads = True
    r = await register_user(client)

    assert r.status_code == 500
    assert r.json()["message"] == "Cloud upload failed. Please try again."
    assert "accessToken" not in r.cookies
    assert await _count_users(session_factory) == 0


@pytest.mark.asyncio
async def test_register_cleans_up_staged_file(client, test_settings):
    await register_user(client)
    staged = Path(test_settings.upload_dir)
    assert list(staged.iterdir()) == []


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_with_username(client):
    await register_user(client)
    r = await client.post(
        "/api/v1/auth/login", json={"username": "amy", "password": "secret1"}
    )
    assert r.status_code == 200
    assert r.json()["message"] == "User logged in successfully"
    assert r.json()["data"]["user"]["username"] == "amy"
    assert r.cookies.get("accessToken")
    assert r.cookies.get("refreshToken")


@pytest.mark.asyncio
async def test_login_with_email_any_case(client):
    await register_user(client)
    r = await client.post(
        "/api/v1/auth/login", json={"email": "AMY@X.com", "password": "secret1"}
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    await register_user(client)
    r = await client.post(
        "/api/v1/auth/login", json={"username": "amy", "password": "wrong-one"}
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_unknown_user(client):
    r = await client.post(
        "/api/v1/auth/login", json={"username": "nobody", "password": "secret1"}
    )
    assert r.status_code == 404
    assert r.json()["message"] == "User not found"


@pytest.mark.asyncio
async def test_login_requires_identifier(client):
    r = await client.post("/api/v1/auth/login", json={"password": "secret1"})
    assert r.status_code == 400
    assert r.json()["message"] == "Username or Email is required"


@pytest.mark.asyncio
async def test_login_requires_password(client):
    r = await client.post("/api/v1/auth/login", json={"username": "amy"})
    assert r.status_code == 400
    assert r.json()["message"] == "Password is required"


# ═══════════════════════════════════════════════════════════
# Refresh rotation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_rotates_tokens(client):
    reg = await register_user(client)
    original = reg.cookies["refreshToken"]

    r = await client.post(
        "/api/v1/auth/refresh-token", headers=cookie_header(refreshToken=original)
    )
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Tokens refreshed successfully"}
    assert r.cookies["refreshToken"] != original
    assert r.cookies["accessToken"] != reg.cookies["accessToken"]


@pytest.mark.asyncio
async def test_refresh_token_is_single_use(client):
    """R works once and yields R'; replaying R fails, R' still works."""
    reg = await register_user(client)
    first = reg.cookies["refreshToken"]

    r1 = await client.post(
        "/api/v1/auth/refresh-token", headers=cookie_header(refreshToken=first)
    )
    assert r1.status_code == 200
    second = r1.cookies["refreshToken"]

    replay = await client.post(
        "/api/v1/auth/refresh-token", headers=cookie_header(refreshToken=first)
    )
    assert replay.status_code == 401
    assert replay.json()["message"] == "Invalid or expired token"

    r2 = await client.post(
        "/api/v1/auth/refresh-token", headers=cookie_header(refreshToken=second)
    )
    assert r2.status_code == 200


@pytest.mark.asyncio
async def test_second_login_invalidates_first_session(client):
    """Login A then login B: A's refresh token is dead."""
    await register_user(client)
    creds = {"username": "amy", "password": "secret1"}

    a = await client.post("/api/v1/auth/login", json=creds)
    b = await client.post("/api/v1/auth/login", json=creds)
    assert a.cookies["refreshToken"] != b.cookies["refreshToken"]

    r = await client.post(
        "/api/v1/auth/refresh-token",
        headers=cookie_header(refreshToken=a.cookies["refreshToken"]),
    )
    assert r.status_code == 401

    r = await client.post(
        "/api/v1/auth/refresh-token",
        headers=cookie_header(refreshToken=b.cookies["refreshToken"]),
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_refresh_without_cookie(client):
    r = await client.post("/api/v1/auth/refresh-token")
    assert r.status_code == 401
    assert r.json()["message"] == "Unauthorized request. Token missing"


@pytest.mark.asyncio
async def test_refresh_with_access_token_rejected(client):
    reg = await register_user(client)
    r = await client.post(
        "/api/v1/auth/refresh-token",
        headers=cookie_header(refreshToken=reg.cookies["accessToken"]),
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_with_garbage_token(client):
    r = await client.post(
        "/api/v1/auth/refresh-token", headers=cookie_header(refreshToken="garbage")
    )
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid or expired token"


# ═══════════════════════════════════════════════════════════
# Logout
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_logout_clears_session(client, session_factory):
    reg = await register_user(client)
    refresh = reg.cookies["refreshToken"]

    r = await client.post("/api/v1/auth/logout")
    assert r.status_code == 200
    assert r.json()["message"] == "User logged out successfully"
    # Both cookies expired by the response
    cleared = r.headers.get_list("set-cookie")
    assert any(h.startswith("accessToken=") for h in cleared)
    assert any(h.startswith("refreshToken=") for h in cleared)
    assert all("Max-Age=0" in h for h in cleared)

    async with session_factory() as db:
        user = (await db.execute(select(User))).scalars().one()
    assert user.refresh_token_digest is None

    r = await client.post(
        "/api/v1/auth/refresh-token", headers=cookie_header(refreshToken=refresh)
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_logout_requires_auth(client):
    r = await client.post("/api/v1/auth/logout")
    assert r.status_code == 401
    assert r.json()["message"] == "Unauthorized request. Token missing"


# ═══════════════════════════════════════════════════════════
# End-to-end
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_login_replay_scenario(client):
    """Register → wrong password → login → stale refresh token rejected."""
    reg = await register_user(
        client, username="amy", email="amy@x.com", password="secret1"
    )
    assert reg.status_code == 201
    assert "password" not in reg.json()["data"]["user"]
    assert "refreshToken" not in reg.json()["data"]["user"]

    bad = await client.post(
        "/api/v1/auth/login", json={"username": "amy", "password": "nope123"}
    )
    assert bad.status_code == 400

    good = await client.post(
        "/api/v1/auth/login", json={"username": "amy", "password": "secret1"}
    )
    assert good.status_code == 200
    assert good.cookies["accessToken"] != reg.cookies["accessToken"]
    assert good.cookies["refreshToken"] != reg.cookies["refreshToken"]

    stale = await client.post(
        "/api/v1/auth/refresh-token",
        headers=cookie_header(refreshToken=reg.cookies["refreshToken"]),
    )
    assert stale.status_code == 401
