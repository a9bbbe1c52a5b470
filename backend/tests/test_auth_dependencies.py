from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import jwt

from capital.core.config import settings
from capital.core.security import sign_token
from capital.dependencies import auth as auth_dependency

from conftest import TEST_PASSWORD, is_cleared, set_cookie_headers

ACCOUNTS_URL = "/api/v1/dashboard/accounts"
LOGIN_URL = "/api/v1/authentication/login"
REFRESH_URL = "/api/v1/authentication/refresh"


def _expired(user_id: str) -> str:
    return sign_token(user_id, "60min", issued_at=datetime.now(timezone.utc) - timedelta(hours=2))


def _corrupted(user_id: str) -> str:
    header, payload, signature = sign_token(user_id, "60min").split(".")
    i = len(signature) // 2
    replacement = "A" if signature[i] != "A" else "B"
    return ".".join([header, payload, signature[:i] + replacement + signature[i + 1 :]])


def _without_user_id() -> str:
    now = int(datetime.now(timezone.utc).timestamp())
    return jwt.encode({"iat": now, "exp": now + 600}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# -----------------------------
# Required routes
# -----------------------------
def test_required_route_without_token_is_401(anon_client, users):
    res = anon_client.get(ACCOUNTS_URL)

    assert res.status_code == 401
    body = res.json()
    assert body["error"] == "UNAUTHORIZED"
    assert "refreshable" not in body
    assert set_cookie_headers(res) == {}


def test_required_route_with_valid_token_exposes_user(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", sign_token(user_a.user_id, "60min"))

    res = anon_client.get(ACCOUNTS_URL)

    assert res.status_code == 200
    assert res.json() == []


def test_required_route_with_expired_token_is_refreshable(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", _expired(user_a.user_id))

    res = anon_client.get(ACCOUNTS_URL)

    assert res.status_code == 401
    assert res.json()["refreshable"] is True
    # Cookies are left alone so the client can call the refresh endpoint
    assert set_cookie_headers(res) == {}


def test_required_route_with_corrupted_token_is_403_and_clears_cookies(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", _corrupted(user_a.user_id))

    res = anon_client.get(ACCOUNTS_URL)

    assert res.status_code == 403
    assert res.json()["error"] == "FORBIDDEN"
    cookies = set_cookie_headers(res)
    assert is_cleared(cookies["access_token"])
    assert is_cleared(cookies["refresh_token"])


def test_required_route_with_missing_user_id_is_403_and_clears_cookies(anon_client, users):
    anon_client.cookies.set("access_token", _without_user_id())

    res = anon_client.get(ACCOUNTS_URL)

    assert res.status_code == 403
    cookies = set_cookie_headers(res)
    assert is_cleared(cookies["access_token"])
    assert is_cleared(cookies["refresh_token"])


def test_unexpected_verification_error_is_403_without_clearing(anon_client, users, monkeypatch, caplog):
    user_a, _ = users
    anon_client.cookies.set("access_token", sign_token(user_a.user_id, "60min"))

    def _boom(token):
        raise RuntimeError("key store offline")

    monkeypatch.setattr(auth_dependency, "verify_token", _boom)

    with caplog.at_level(logging.ERROR, logger="capital.dependencies.auth"):
        res = anon_client.get(ACCOUNTS_URL)

    assert res.status_code == 403
    assert set_cookie_headers(res) == {}
    assert any(r.exc_info for r in caplog.records)


# -----------------------------
# Anonymous-only routes
# -----------------------------
def test_anonymous_route_with_valid_token_is_turned_away(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", sign_token(user_a.user_id, "60min"))

    res = anon_client.post(LOGIN_URL, json={"username": "test_user", "password": TEST_PASSWORD})

    assert res.status_code == 302
    assert res.json()["error"] == "ALREADY_AUTHENTICATED"
    assert set_cookie_headers(res) == {}


def test_anonymous_route_with_expired_token_proceeds(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", _expired(user_a.user_id))

    res = anon_client.post(LOGIN_URL, json={"username": "test_user", "password": TEST_PASSWORD})

    assert res.status_code == 200
    assert res.json() == {"success": True}


def test_anonymous_route_with_corrupted_token_clears_and_proceeds(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", _corrupted(user_a.user_id))

    res = anon_client.post(LOGIN_URL, json={"username": "test_user", "password": TEST_PASSWORD})

    assert res.status_code == 200
    # The bad cookie is cleared first, then replaced by the new session
    access = [h for h in res.headers.get_list("set-cookie") if h.startswith("access_token=")]
    assert len(access) == 2
    assert is_cleared(access[0])
    assert not is_cleared(access[-1])


def test_anonymous_route_with_corrupted_token_clears_on_failed_login(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", _corrupted(user_a.user_id))

    res = anon_client.post(LOGIN_URL, json={"username": "test_user", "password": "WrongPassword1"})

    assert res.status_code == 401
    assert res.json()["error"] == "UNAUTHORIZED"
    cookies = set_cookie_headers(res)
    assert is_cleared(cookies["access_token"])
    assert is_cleared(cookies["refresh_token"])


def test_anonymous_route_with_corrupted_token_clears_on_invalid_payload(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", _corrupted(user_a.user_id))

    res = anon_client.post("/api/v1/users", json={"username": "x"})

    assert res.status_code == 400
    cookies = set_cookie_headers(res)
    assert is_cleared(cookies["access_token"])
    assert is_cleared(cookies["refresh_token"])


# -----------------------------
# Refresh route
# -----------------------------
def test_refresh_without_cookie_is_401(anon_client):
    res = anon_client.post(REFRESH_URL)

    assert res.status_code == 401
    assert res.json()["error"] == "UNAUTHORIZED"
    assert set_cookie_headers(res) == {}


def test_refresh_with_expired_token_is_401_and_clears(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("refresh_token", _expired(user_a.user_id))

    res = anon_client.post(REFRESH_URL)

    assert res.status_code == 401
    cookies = set_cookie_headers(res)
    assert is_cleared(cookies["access_token"])
    assert is_cleared(cookies["refresh_token"])


def test_refresh_with_bad_signature_is_401_and_clears(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("refresh_token", _corrupted(user_a.user_id))

    res = anon_client.post(REFRESH_URL)

    assert res.status_code == 401
    assert is_cleared(set_cookie_headers(res)["refresh_token"])


def test_refresh_with_missing_user_id_is_403_and_clears(anon_client):
    anon_client.cookies.set("refresh_token", _without_user_id())

    res = anon_client.post(REFRESH_URL)

    assert res.status_code == 403
    cookies = set_cookie_headers(res)
    assert is_cleared(cookies["access_token"])
    assert is_cleared(cookies["refresh_token"])


def test_refresh_ignores_access_cookie(anon_client, users):
    user_a, _ = users
    anon_client.cookies.set("access_token", sign_token(user_a.user_id, "60min"))

    res = anon_client.post(REFRESH_URL)

    assert res.status_code == 401
