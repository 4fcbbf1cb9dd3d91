"""
tests/test_tokens.py -- Unit tests for auth.tokens.

Covers:
  - bcrypt hashing round trip and rejection of a corrupted hash
  - token issue -> extract_username
  - typed failures: malformed, forged, expired, missing subject
  - is_token_valid against the fresh user record, including a role change
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import User
from auth.tokens import (
    create_access_token,
    decode_access_token,
    extract_username,
    hash_password,
    is_token_valid,
    verify_password,
)
from core.config import get_settings
from core.errors import TokenError, TokenExpired, TokenInvalid, TokenMalformed


def _user(username: str = "alice", roles=("USER",), uid: int = 1) -> User:
    return User(username=username, hashed_password="x", roles=frozenset(roles), id=uid)


def _sign(claims: dict, key: str | None = None) -> str:
    return jwt.encode(claims, key or get_settings().secret_key, algorithm="HS256")


class TestPasswordHashing:
    def test_verify_accepts_the_original_password(self) -> None:
        hashed = hash_password("correct horse")
        assert hashed != "correct horse", "Password must never be stored in plain text"
        assert verify_password("correct horse", hashed)

    def test_verify_rejects_a_wrong_password(self) -> None:
        assert not verify_password("wrong", hash_password("correct horse"))

    def test_verify_returns_false_for_a_non_bcrypt_hash(self) -> None:
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestIssueAndExtract:
    def test_extract_username_returns_subject(self) -> None:
        token = create_access_token(_user("alice"))
        assert extract_username(token) == "alice"

    def test_claims_carry_id_and_sorted_roles(self) -> None:
        claims = decode_access_token(create_access_token(_user("boss", roles=("MANAGER", "ADMIN"), uid=7)))
        assert claims["uid"] == 7
        assert claims["roles"] == ["ADMIN", "MANAGER"]
        assert claims["exp"] > claims["iat"]

    def test_default_lifetime_comes_from_settings(self) -> None:
        claims = decode_access_token(create_access_token(_user()))
        assert claims["exp"] - claims["iat"] == get_settings().token_expire_seconds


class TestTypedFailures:
    def test_garbage_is_malformed(self) -> None:
        with pytest.raises(TokenMalformed):
            extract_username("not.a.jwt")

    def test_missing_subject_is_malformed(self) -> None:
        now = datetime.now(timezone.utc)
        token = _sign({"uid": 1, "iat": now, "exp": now + timedelta(hours=1)})
        with pytest.raises(TokenMalformed):
            extract_username(token)

    def test_foreign_signature_is_invalid(self) -> None:
        now = datetime.now(timezone.utc)
        token = _sign({"sub": "alice", "iat": now, "exp": now + timedelta(hours=1)}, key="k" * 40)
        with pytest.raises(TokenInvalid):
            extract_username(token)

    def test_past_expiry_is_expired(self) -> None:
        now = datetime.now(timezone.utc)
        token = _sign({"sub": "alice", "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)})
        with pytest.raises(TokenExpired):
            extract_username(token)

    def test_all_failures_share_a_base_class(self) -> None:
        for exc_type in (TokenMalformed, TokenInvalid, TokenExpired):
            assert issubclass(exc_type, TokenError)


class TestIsTokenValid:
    def test_valid_for_the_same_record(self) -> None:
        user = _user("alice", roles=("MANAGER",))
        assert is_token_valid(create_access_token(user), user)

    def test_false_when_roles_changed_in_storage(self) -> None:
        """A token issued for {MANAGER} stops validating once the record says {USER}."""
        issued_for = _user("alice", roles=("MANAGER",))
        token = create_access_token(issued_for)
        demoted = _user("alice", roles=("USER",))
        assert is_token_valid(token, demoted) is False

    def test_false_for_a_different_username(self) -> None:
        token = create_access_token(_user("alice"))
        assert is_token_valid(token, _user("mallory")) is False

    def test_false_for_a_re_registered_account(self) -> None:
        token = create_access_token(_user("alice", uid=1))
        assert is_token_valid(token, _user("alice", uid=2)) is False

    def test_forged_token_raises_rather_than_returning(self) -> None:
        now = datetime.now(timezone.utc)
        token = _sign({"sub": "alice", "uid": 1, "roles": ["USER"], "iat": now, "exp": now + timedelta(hours=1)}, key="k" * 40)
        with pytest.raises(TokenInvalid):
            is_token_valid(token, _user("alice"))
