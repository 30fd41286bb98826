"""
Tests for the session authority and credential helpers.
"""

from datetime import timedelta

import pytest

from estimate_core.contracts.identity import Claimed, ContractorRole, Identity, Unclaimed
from estimate_core.security import (
    create_access_token,
    get_password_hash,
    verify_password,
)


@pytest.fixture
def identity():
    return Identity(
        contractor_id="c-1",
        company=Claimed("co1"),
        role=ContractorRole.OFFICE,
        email="office@co1.example.com",
    )


class TestCredentials:
    def test_verify_password(self, password, password_hash):
        assert verify_password(password, password_hash) is True
        assert verify_password("wrong", password_hash) is False

    def test_verify_password_rejects_empty_and_garbage(self, password):
        assert verify_password("", get_password_hash(password)) is False
        assert verify_password(password, "") is False
        assert verify_password(password, "not-a-bcrypt-hash") is False


class TestSessionAuthority:
    def test_round_trip(self, sessions, identity):
        token = sessions.create_session(identity)
        assert sessions.read_session(token) == identity

    def test_unclaimed_identity_round_trip(self, sessions):
        identity = Identity(
            contractor_id="c-2",
            company=Unclaimed(),
            role=ContractorRole.TECH,
            email="new@example.com",
        )
        restored = sessions.read_session(sessions.create_session(identity))
        assert isinstance(restored.company, Unclaimed)
        assert restored.is_claimed is False

    @pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
    def test_unreadable_tokens(self, sessions, token):
        assert sessions.read_session(token) is None

    def test_tampered_token(self, sessions, identity):
        token = sessions.create_session(identity)
        head, payload, signature = token.split(".")
        tampered = ".".join([head, payload, signature[::-1]])
        assert sessions.read_session(tampered) is None

    def test_expired_token(self, sessions, identity):
        claims = identity.to_claims()
        claims["jti"] = "expired"
        token = create_access_token(claims, expires_delta=timedelta(seconds=-5))
        assert sessions.read_session(token) is None

    def test_token_without_jti_rejected(self, sessions, identity):
        token = create_access_token(identity.to_claims())
        assert sessions.read_session(token) is None

    def test_destroy_revokes(self, sessions, identity, kv):
        token = sessions.create_session(identity)
        sessions.destroy_session(token)
        assert sessions.read_session(token) is None
        assert any(key.startswith("session:revoked:") for key, _ in kv.scan("session:"))

    def test_destroy_only_affects_that_token(self, sessions, identity):
        first = sessions.create_session(identity)
        second = sessions.create_session(identity)
        sessions.destroy_session(first)
        assert sessions.read_session(second) == identity

    def test_destroy_invalid_token_is_noop(self, sessions, kv):
        sessions.destroy_session(None)
        sessions.destroy_session("garbage")
        assert list(kv.scan("")) == []

    def test_refresh_issues_new_snapshot(self, sessions, identity):
        token = sessions.create_session(identity)
        promoted = Identity(
            contractor_id=identity.contractor_id,
            company=identity.company,
            role=ContractorRole.OWNER_ADMIN,
            email=identity.email,
        )
        new_token = sessions.refresh_session(token, promoted)
        assert sessions.read_session(token) is None
        assert sessions.read_session(new_token).role is ContractorRole.OWNER_ADMIN
