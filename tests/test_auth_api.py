from __future__ import annotations

import json

from conftest import auth_headers, register

from hexboard.config import feature_flags
from hexboard.server.core import auth
from hexboard.server.core.db import SessionTokenRow, UserRow


def test_register_requires_invitation(api_client) -> None:
    response = api_client.post(
        "/api/auth/register", json={"email": "mallory@example.com", "password": "pw"}
    )
    assert response.status_code == 403
    body = response.json()
    assert body["ok"] is False
    assert body["code"] == "not_invited"
    assert body["message"] == "Not invited"


def test_register_then_duplicate_conflicts(api_client) -> None:
    first = api_client.post(
        "/api/auth/register", json={"email": "Alice@Example.com ", "password": "secret-pw"}
    )
    assert first.status_code == 200
    payload = first.json()
    assert payload["ok"] is True
    assert payload["token"].startswith("hbt_")
    assert payload["user"]["email"] == "alice@example.com"
    assert payload["user"]["createdAt"].endswith("Z")

    again = api_client.post(
        "/api/auth/register", json={"email": "alice@example.com", "password": "other"}
    )
    assert again.status_code == 409
    assert again.json()["message"] == "User already exists"


def test_register_validates_input(api_client) -> None:
    response = api_client.post("/api/auth/register", json={"email": "alice@example.com"})
    assert response.status_code == 400
    assert response.json()["code"] == "bad_request"


def test_login_and_me(api_client) -> None:
    register(api_client, "bob@example.com", "hunter22")
    bad = api_client.post("/api/auth/login", json={"email": "bob@example.com", "password": "nope"})
    assert bad.status_code == 401
    assert bad.json()["message"] == "Invalid credentials"

    unknown = api_client.post("/api/auth/login", json={"email": "zed@example.com", "password": "x"})
    assert unknown.status_code == 401

    good = api_client.post("/api/auth/login", json={"email": "bob@example.com", "password": "hunter22"})
    assert good.status_code == 200
    token = good.json()["token"]

    me = api_client.get("/api/auth/me", headers=auth_headers(token))
    assert me.status_code == 200
    assert me.json()["email"] == "bob@example.com"


def test_me_requires_valid_token(api_client) -> None:
    missing = api_client.get("/api/auth/me")
    assert missing.status_code == 401
    assert missing.json()["message"] == "Missing token"

    invalid = api_client.get("/api/auth/me", headers=auth_headers("hbt_nope"))
    assert invalid.status_code == 401
    assert invalid.json()["code"] == "unauthorized"


def test_registration_can_be_switched_off(api_client, hexboard_env) -> None:
    (hexboard_env / "hexboard.json").write_text(
        json.dumps({"features": {"enable_registration": False}}), encoding="utf-8"
    )
    feature_flags.reset_cache()
    response = api_client.post(
        "/api/auth/register", json={"email": "alice@example.com", "password": "pw"}
    )
    assert response.status_code == 403
    assert response.json()["code"] == "http_403"


def test_tokens_are_stored_hashed_and_expire(db_session) -> None:
    user, raw = auth.register(db_session, "carol@example.com", "pw")
    stored = db_session.query(SessionTokenRow).filter_by(user_id=user.user_id).one()
    assert stored.hash != raw
    assert auth.resolve_token(db_session, raw).user_id == user.user_id

    stale = auth.issue_token(db_session, user, ttl=-1)
    assert auth.resolve_token(db_session, stale) is None

    assert auth.revoke_token(db_session, raw) is True
    assert auth.resolve_token(db_session, raw) is None
    assert auth.revoke_token(db_session, "hbt_unknown") is False


def test_passwords_are_hashed(db_session) -> None:
    user, _ = auth.register(db_session, "dave@example.com", "correct horse")
    row = db_session.query(UserRow).filter_by(user_id=user.user_id).one()
    assert row.pass_hash.startswith("$pbkdf2-sha256$")
    assert auth.verify_password("correct horse", row.pass_hash)
    assert not auth.verify_password("wrong", row.pass_hash)
    assert not auth.verify_password("x", "")
