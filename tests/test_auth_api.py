"""Auth API tests — the session lifecycle over HTTP.

Learn: Tests cover:
1. Signup → token pair + refreshToken cookie, duplicate prevention
2. Login by email or username, and the selection-token path
3. Refresh rotation and where the refresh token is read from
4. Switching users, logout, /me and /accounts/users
5. The {"error", "reason"} shape of every failure

The client keeps cookies between requests, so tests that care about
where the refresh token came from clear the jar first.
"""

import uuid

import pytest

from conftest import PASSWORD, seed_account

API = "/api/v1"


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _signup(client, username="Dave Jones", email=None, password="pw-123456"):
    email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
    r = await client.post(
        f"{API}/auth/signup",
        json={"email": email, "password": password, "username": username},
    )
    assert r.status_code == 201, r.text
    return r.json()


# ═══════════════════════════════════════════════════════════
# Signup
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_signup_returns_pair_and_sets_cookie(client, codec):
    r = await client.post(
        f"{API}/auth/signup",
        json={"email": "dave@example.com", "password": "pw-123456", "username": "Dáve Jønes"},
    )
    assert r.status_code == 201
    data = r.json()
    assert data["token_type"] == "bearer"
    assert data["roles"] == "user"
    assert codec.verify(data["access_token"]).user_id == data["user_id"]

    cookie = r.headers["set-cookie"]
    assert cookie.startswith(f"refreshToken={data['refresh_token']}")
    assert "HttpOnly" in cookie

    me = await client.get(f"{API}/auth/me", headers=_bearer(data["access_token"]))
    assert me.json()["account_id"] == data["account_id"]


@pytest.mark.asyncio
async def test_signup_duplicate_username(client):
    await _signup(client, username="Dave Jones")
    r = await client.post(
        f"{API}/auth/signup",
        json={"email": "other@example.com", "password": "pw", "username": "dave-jones"},
    )
    assert r.status_code == 409
    assert r.json()["error"] == "UsernameTaken"


@pytest.mark.asyncio
async def test_signup_duplicate_email(client):
    await _signup(client, username="first", email="same@example.com")
    r = await client.post(
        f"{API}/auth/signup",
        json={"email": "same@example.com", "password": "pw", "username": "second"},
    )
    assert r.status_code == 409
    assert r.json()["error"] == "EmailTaken"


@pytest.mark.asyncio
async def test_signup_missing_field(client):
    r = await client.post(
        f"{API}/auth/signup", json={"email": "a@example.com", "username": "name"}
    )
    assert r.status_code == 400
    assert r.json() == {"error": "MissingField", "reason": "password is required"}


@pytest.mark.asyncio
async def test_malformed_json_is_bad_request(client):
    r = await client.post(
        f"{API}/auth/signup",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "MalformedInput"


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_by_email_and_username(client, store):
    _, (user,) = await seed_account(store, ["solo"], email="solo@example.com")

    by_email = await client.post(
        f"{API}/auth/login", json={"identifier": "solo@example.com", "password": PASSWORD}
    )
    by_name = await client.post(
        f"{API}/auth/login", json={"identifier": "solo", "password": PASSWORD}
    )

    assert by_email.status_code == 200
    assert by_email.json()["user_id"] == user.id
    assert by_name.json()["user_id"] == user.id


@pytest.mark.asyncio
async def test_login_wrong_password(client, store):
    await seed_account(store, ["solo"], email="solo@example.com")
    r = await client.post(
        f"{API}/auth/login", json={"identifier": "solo@example.com", "password": "nope"}
    )
    assert r.status_code == 401
    assert r.json()["error"] == "InvalidCredentials"


@pytest.mark.asyncio
async def test_login_missing_identifier(client):
    r = await client.post(f"{API}/auth/login", json={"password": "pw"})
    assert r.status_code == 400
    assert r.json() == {"error": "MissingField", "reason": "identifier is required"}


@pytest.mark.asyncio
async def test_login_unknown_identifier(client):
    r = await client.post(
        f"{API}/auth/login", json={"identifier": "ghost", "password": "pw"}
    )
    assert r.status_code == 404
    assert r.json()["error"] == "NotFound"


@pytest.mark.asyncio
async def test_login_multi_user_account_selection_flow(client, store):
    _, (mum, kid) = await seed_account(store, ["mum", "kid"], email="fam@example.com")

    r = await client.post(
        f"{API}/auth/login", json={"identifier": "fam@example.com", "password": PASSWORD}
    )
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {"selection_token", "account_id"}
    assert "set-cookie" not in r.headers

    users = await client.get(
        f"{API}/accounts/users", headers=_bearer(body["selection_token"])
    )
    assert users.status_code == 200
    assert sorted(u["username"] for u in users.json()) == ["kid", "mum"]

    r = await client.post(
        f"{API}/auth/login",
        json={"identifier": "fam@example.com", "password": PASSWORD, "username": "kid"},
    )
    assert r.json()["user_id"] == kid.id


@pytest.mark.asyncio
async def test_users_on_account_rejects_access_token(client):
    data = await _signup(client)
    r = await client.get(f"{API}/accounts/users", headers=_bearer(data["access_token"]))
    assert r.status_code == 401
    assert r.json()["error"] == "InvalidToken"


# ═══════════════════════════════════════════════════════════
# Refresh
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_rotates(client):
    data = await _signup(client)
    client.cookies.clear()

    r = await client.post(f"{API}/auth/refresh", headers=_bearer(data["refresh_token"]))
    assert r.status_code == 200
    rotated = r.json()
    assert rotated["refresh_token"] != data["refresh_token"]
    assert rotated["user_id"] == data["user_id"]

    client.cookies.clear()
    again = await client.post(
        f"{API}/auth/refresh", headers=_bearer(data["refresh_token"])
    )
    assert again.status_code == 401
    assert again.json()["error"] == "UnknownAccountForToken"


@pytest.mark.asyncio
async def test_refresh_token_from_cookie_or_body(client):
    data = await _signup(client)
    client.cookies.clear()

    via_cookie = await client.post(
        f"{API}/auth/refresh",
        headers={"Cookie": f"refreshToken={data['refresh_token']}"},
    )
    assert via_cookie.status_code == 200

    client.cookies.clear()
    via_body = await client.post(
        f"{API}/auth/refresh",
        json={"refresh_token": via_cookie.json()["refresh_token"]},
    )
    assert via_body.status_code == 200


@pytest.mark.asyncio
async def test_refresh_header_wins_over_cookie_and_body(client):
    data = await _signup(client)
    client.cookies.clear()

    r = await client.post(
        f"{API}/auth/refresh",
        headers={**_bearer(data["refresh_token"]), "Cookie": "refreshToken=garbage"},
        json={"refresh_token": "also-garbage"},
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_refresh_cookie_wins_over_body(client):
    data = await _signup(client)
    client.cookies.clear()

    r = await client.post(
        f"{API}/auth/refresh",
        headers={"Cookie": "refreshToken=garbage"},
        json={"refresh_token": data["refresh_token"]},
    )
    assert r.status_code == 401
    assert r.json()["error"] == "InvalidToken"


@pytest.mark.asyncio
async def test_refresh_without_token(client):
    client.cookies.clear()
    r = await client.post(f"{API}/auth/refresh")
    assert r.status_code == 400
    assert r.json()["error"] == "MissingToken"


@pytest.mark.asyncio
async def test_refresh_with_access_token(client):
    data = await _signup(client)
    client.cookies.clear()
    r = await client.post(f"{API}/auth/refresh", headers=_bearer(data["access_token"]))
    assert r.status_code == 401
    assert r.json()["error"] == "InvalidToken"


# ═══════════════════════════════════════════════════════════
# Switch, add user, logout
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_add_user_then_switch(client):
    data = await _signup(client, username="Mum")

    r = await client.post(
        f"{API}/accounts/users",
        json={"username": "The Kids"},
        headers=_bearer(data["access_token"]),
    )
    assert r.status_code == 201
    kid = r.json()
    assert kid["username"] == "the-kids"
    assert kid["account_id"] == data["account_id"]
    assert kid["roles"] == data["roles"]

    client.cookies.clear()
    r = await client.post(
        f"{API}/auth/switch",
        json={"username": "the-kids"},
        headers=_bearer(data["refresh_token"]),
    )
    assert r.status_code == 200
    switched = r.json()
    assert switched["user_id"] == kid["id"]
    assert switched["account_id"] == data["account_id"]

    me = await client.get(f"{API}/auth/me", headers=_bearer(switched["access_token"]))
    assert me.json()["user_id"] == kid["id"]


@pytest.mark.asyncio
async def test_switch_to_unknown_user(client):
    data = await _signup(client)
    client.cookies.clear()
    r = await client.post(
        f"{API}/auth/switch",
        json={"username": "nobody-here"},
        headers=_bearer(data["refresh_token"]),
    )
    assert r.status_code == 404
    assert r.json()["error"] == "UnknownUser"


@pytest.mark.asyncio
async def test_switch_after_logout_is_rejected(client):
    data = await _signup(client, username="Mum")
    await client.post(
        f"{API}/accounts/users",
        json={"username": "kid"},
        headers=_bearer(data["access_token"]),
    )
    client.cookies.clear()
    await client.post(f"{API}/auth/logout", headers=_bearer(data["refresh_token"]))

    client.cookies.clear()
    r = await client.post(
        f"{API}/auth/switch",
        json={"username": "kid"},
        headers=_bearer(data["refresh_token"]),
    )
    assert r.status_code == 401
    assert r.json()["error"] == "UnknownAccountForToken"


@pytest.mark.asyncio
async def test_add_user_requires_access_token(client):
    r = await client.post(f"{API}/accounts/users", json={"username": "someone"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_and_clears_cookie(client):
    data = await _signup(client)
    client.cookies.clear()

    r = await client.post(f"{API}/auth/logout", headers=_bearer(data["refresh_token"]))
    assert r.status_code == 200
    assert r.json() == {"logged_out": True}
    assert 'refreshToken=""' in r.headers["set-cookie"]

    client.cookies.clear()
    r = await client.post(f"{API}/auth/refresh", headers=_bearer(data["refresh_token"]))
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_logout_with_access_token_is_unknown_token(client):
    data = await _signup(client)
    client.cookies.clear()
    r = await client.post(f"{API}/auth/logout", headers=_bearer(data["access_token"]))
    assert r.status_code == 404
    assert r.json()["error"] == "UnknownToken"


# ═══════════════════════════════════════════════════════════
# /me
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_requires_token(client):
    r = await client.get(f"{API}/auth/me")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_rejects_refresh_token(client):
    data = await _signup(client)
    r = await client.get(f"{API}/auth/me", headers=_bearer(data["refresh_token"]))
    assert r.status_code == 401
