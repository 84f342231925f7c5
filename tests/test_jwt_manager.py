"""Tests for the durable session token manager."""

import jwt

from app.auth.jwt_manager import JWTManager
from app.auth.models import Identity


def make_identity():
    return Identity(id="user-1", provider_user_id="stytch-user-1", phone_number="+14155550100", email="user@example.com")


class TestJWTManager:
    def test_create_and_verify(self):
        manager = JWTManager(secret_key="secret", expire_minutes=30)

        session = manager.create_session_token(make_identity())
        payload = manager.verify_token(session.token)

        assert payload["sub"] == "user-1"
        assert payload["provider_user_id"] == "stytch-user-1"
        assert payload["type"] == "access"
        assert payload["exp"] == int(session.expires_at.timestamp())

    def test_wrong_secret(self):
        session = JWTManager(secret_key="secret").create_session_token(make_identity())

        assert JWTManager(secret_key="other-secret").verify_token(session.token) is None

    def test_expired_token(self):
        manager = JWTManager(secret_key="secret", expire_minutes=-1)
        session = manager.create_session_token(make_identity())

        assert manager.verify_token(session.token) is None

    def test_garbage_token(self):
        assert JWTManager(secret_key="secret").verify_token("not-a-token") is None

    def test_non_access_token_rejected(self):
        token = jwt.encode({"sub": "user-1", "type": "refresh"}, "secret", algorithm="HS256")

        assert JWTManager(secret_key="secret").verify_token(token) is None

    def test_tokens_are_unique(self):
        manager = JWTManager(secret_key="secret")

        first = manager.create_session_token(make_identity())
        second = manager.create_session_token(make_identity())
        assert first.token != second.token

    def test_revoked_token_rejected(self):
        manager = JWTManager(secret_key="secret")
        session = manager.create_session_token(make_identity())
        payload = manager.verify_token(session.token)

        manager.revoke(payload)

        assert manager.is_revoked(payload["sid"]) is True
        assert manager.verify_token(session.token) is None

    def test_revoking_one_token_keeps_others(self):
        manager = JWTManager(secret_key="secret")
        first = manager.create_session_token(make_identity())
        second = manager.create_session_token(make_identity())

        manager.revoke(manager.verify_token(first.token))

        assert manager.verify_token(second.token)["sub"] == "user-1"

    def test_expired_revocations_are_purged(self):
        manager = JWTManager(secret_key="secret")
        manager.revoke({"sid": "old-sid", "sub": "user-1", "exp": 1})
        session = manager.create_session_token(make_identity())

        manager.revoke(manager.verify_token(session.token))

        assert manager.is_revoked("old-sid") is False
        assert manager.is_revoked(None) is False
