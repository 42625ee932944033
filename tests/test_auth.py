"""Tests for authentication: password hashing, tokens, registration, login and the 401 contract."""
from __future__ import annotations

import time

import pytest

from core.auth import (
    _jwt_encode,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from core.config import get_settings


# ---------------------------------------------------------------------------
# Unit tests: password hashing
# ---------------------------------------------------------------------------


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("mysecretpassword")
        assert hashed != "mysecretpassword"
        assert verify_password("mysecretpassword", hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct")
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_fails_closed(self):
        assert not verify_password("anything", "not-a-hash")


# ---------------------------------------------------------------------------
# Unit tests: access tokens
# ---------------------------------------------------------------------------


class TestAccessTokens:
    def test_round_trip_claims(self):
        token = create_access_token(7, "a@acmerealty.com", "agent")
        payload = decode_access_token(token)

        assert payload["sub"] == "7"
        assert payload["email"] == "a@acmerealty.com"
        assert payload["role"] == "agent"

    def test_tampered_token_is_rejected(self):
        token = create_access_token(7, "a@acmerealty.com", "agent")
        head, body, sig = token.split(".")

        assert decode_access_token(f"{head}.{body}.{sig[:-2]}xx") is None
        assert decode_access_token("garbage") is None

    def test_expired_token_is_rejected(self):
        secret = get_settings().jwt_secret_key
        token = _jwt_encode({"sub": "7", "type": "access", "exp": int(time.time()) - 10}, secret)

        assert decode_access_token(token) is None


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


class TestRegisterAndLogin:
    def test_first_user_is_admin_then_agents(self, anon_client):
        first = anon_client.post(
            "/api/auth/register",
            json={"email": "Owner@AcmeRealty.com", "password": "supersecret", "firstName": "Olga"},
        )
        second = anon_client.post(
            "/api/auth/register",
            json={"email": "new@acmerealty.com", "password": "supersecret"},
        )

        assert first.status_code == 201
        assert first.json()["user"]["role"] == "admin"
        assert first.json()["user"]["email"] == "owner@acmerealty.com"
        assert first.json()["token_type"] == "bearer"
        assert second.json()["user"]["role"] == "agent"

    def test_duplicate_email(self, anon_client, sample_user):
        response = anon_client.post(
            "/api/auth/register",
            json={"email": sample_user.email, "password": "supersecret"},
        )
        assert response.status_code == 409

    def test_short_password(self, anon_client):
        response = anon_client.post(
            "/api/auth/register", json={"email": "x@acmerealty.com", "password": "short"}
        )
        assert response.status_code == 422

    def test_login_and_fetch_user(self, anon_client, sample_user):
        response = anon_client.post(
            "/api/auth/login", json={"email": sample_user.email, "password": "correct-horse"}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = anon_client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["firstName"] == "Avery"

    def test_bad_password(self, anon_client, sample_user):
        response = anon_client.post(
            "/api/auth/login", json={"email": sample_user.email, "password": "wrong-password"}
        )
        assert response.status_code == 401

    def test_inactive_user_cannot_login(self, anon_client, db_session, sample_user):
        sample_user.is_active = False
        db_session.flush()

        response = anon_client.post(
            "/api/auth/login", json={"email": sample_user.email, "password": "correct-horse"}
        )
        assert response.status_code == 401

    def test_login_rate_limit(self, anon_client, sample_user):
        for _ in range(5):
            anon_client.post("/api/auth/login", json={"email": sample_user.email, "password": "nope-nope"})

        response = anon_client.post(
            "/api/auth/login", json={"email": sample_user.email, "password": "correct-horse"}
        )
        assert response.status_code == 429


class TestUnauthorized:
    @pytest.mark.parametrize(
        "path",
        [
            "/api/leads",
            "/api/properties",
            "/api/deals",
            "/api/tasks",
            "/api/notifications",
            "/api/pipeline/lead",
            "/api/dashboard/metrics",
        ],
    )
    def test_missing_token_is_401(self, anon_client, path):
        response = anon_client.get(path)

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_invalid_token_is_401(self, anon_client):
        response = anon_client.get("/api/leads", headers={"Authorization": "Bearer not.a.token"})
        assert response.status_code == 401

    def test_token_for_deleted_user_is_401(self, anon_client, tables):
        token = create_access_token(987654, "ghost@acmerealty.com", "agent")
        response = anon_client.get("/api/leads", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_valid_token(self, anon_client, auth_headers, sample_lead):
        response = anon_client.get("/api/leads", headers=auth_headers)

        assert response.status_code == 200
        assert [lead["id"] for lead in response.json()] == [sample_lead.id]

    def test_health_is_public(self, anon_client):
        assert anon_client.get("/api/health").json()["status"] == "healthy"
